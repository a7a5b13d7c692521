"""
Application container.

Builds every long-lived collaborator once from Settings and tears them
down in reverse order:

    container = AppContainer.build(settings)
    await container.start()
    ...
    await container.stop()     # drains background uploads first

Tests pass a prebuilt store and httpx transports to replace the network.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from speech_relay.core.config import ServiceConfig, Settings
from speech_relay.core.logging import get_logger, info, warn
from speech_relay.core.metrics import SpeechMetrics, metrics as default_metrics
from speech_relay.services.speech_service import SpeechService
from speech_relay.storage import create_store
from speech_relay.storage.base import ObjectStore
from speech_relay.streaming.background import BackgroundSupervisor
from speech_relay.synthesis.elevenlabs import ElevenLabsClient

_LOG = get_logger("speech-relay.container")


@dataclass
class AppContainer:
    config: ServiceConfig
    store: ObjectStore
    synthesizer: ElevenLabsClient
    lookup_client: httpx.AsyncClient
    supervisor: BackgroundSupervisor
    service: SpeechService
    metrics: SpeechMetrics

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        store: Optional[ObjectStore] = None,
        synthesis_transport: Optional[httpx.AsyncBaseTransport] = None,
        lookup_transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[SpeechMetrics] = None,
    ) -> "AppContainer":
        """
        Construct (but do not start) all collaborators.

        Raises:
            ConfigValidationError: If the settings are invalid.
        """
        config = settings.get_service_config()
        metrics = metrics or default_metrics

        if store is None:
            store = create_store(config.storage)

        synthesizer = ElevenLabsClient(
            base_url=config.synthesis.base_url,
            api_key=config.synthesis.api_key,
            timeout_s=config.synthesis.timeout_s,
            connect_timeout_s=config.synthesis.connect_timeout_s,
            transport=synthesis_transport,
        )
        lookup_client = httpx.AsyncClient(
            timeout=config.cache.lookup_timeout_s,
            transport=lookup_transport,
        )
        supervisor = BackgroundSupervisor(metrics=metrics)
        service = SpeechService(
            config=config,
            store=store,
            synthesizer=synthesizer,
            lookup_client=lookup_client,
            supervisor=supervisor,
            metrics=metrics,
        )
        return cls(
            config=config,
            store=store,
            synthesizer=synthesizer,
            lookup_client=lookup_client,
            supervisor=supervisor,
            service=service,
            metrics=metrics,
        )

    async def start(self) -> None:
        await self.synthesizer.start()
        if not self.synthesizer.configured:
            warn(_LOG, "synthesis_not_configured", hint="set ELEVENLABS_API_KEY")
        info(
            _LOG, "container_started",
            storage=self.store.name,
            voice=self.config.synthesis.default_voice_id,
            model=self.config.synthesis.model_id,
        )

    async def stop(self) -> None:
        pending = await self.supervisor.drain(self.config.background.drain_timeout_s)
        await self.synthesizer.stop()
        await self.lookup_client.aclose()
        await self.store.close()
        info(_LOG, "container_stopped", cancelled_uploads=pending)
