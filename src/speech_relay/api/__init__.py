"""
speech-relay HTTP API.

    - routes.py: /v1/speech, /v1/artifacts/{name}, /health, /metrics
    - dependencies.py: Settings and AppContainer providers
    - schemas.py: Pydantic response models
"""
