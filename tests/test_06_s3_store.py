"""
Tests for S3ObjectStore with a mocked boto3 client.

Tests cover:
- head_object 404 -> None (miss)
- head_object other errors -> CacheLookupError
- Presigned URL generated with the requested TTL
- put_object called with full body and content type
- Client errors on upload -> PersistenceError
"""
import asyncio
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from speech_relay.core.errors import CacheLookupError, PersistenceError
from speech_relay.storage.keys import make_key, object_name
from speech_relay.storage.s3 import S3ObjectStore

NAME = object_name(make_key("Hello world", "voiceA"))


def _client_error(code: str, operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


async def _chunks(parts):
    for part in parts:
        yield part


@pytest.fixture
def s3_client():
    client = MagicMock()
    client.generate_presigned_url.return_value = "https://bucket.s3.test/signed"
    return client


@pytest.fixture
def s3_store(s3_client):
    return S3ObjectStore(bucket="speech", client=s3_client)


class TestGetSignedUrl:
    """Tests for get_signed_url()."""

    def test_present_object(self, s3_store, s3_client):
        url = asyncio.run(s3_store.get_signed_url(NAME, 60))

        assert url == "https://bucket.s3.test/signed"
        s3_client.head_object.assert_called_once_with(Bucket="speech", Key=NAME)
        s3_client.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={"Bucket": "speech", "Key": NAME},
            ExpiresIn=60,
        )

    @pytest.mark.parametrize("code", ["404", "NoSuchKey", "NotFound"])
    def test_missing_object(self, s3_store, s3_client, code):
        s3_client.head_object.side_effect = _client_error(code)

        assert asyncio.run(s3_store.get_signed_url(NAME, 60)) is None
        s3_client.generate_presigned_url.assert_not_called()

    def test_access_denied(self, s3_store, s3_client):
        s3_client.head_object.side_effect = _client_error("403")

        with pytest.raises(CacheLookupError) as exc_info:
            asyncio.run(s3_store.get_signed_url(NAME, 60))

        assert exc_info.value.details["code"] == "403"

    def test_endpoint_unreachable(self, s3_store, s3_client):
        s3_client.head_object.side_effect = EndpointConnectionError(endpoint_url="https://s3.test")

        with pytest.raises(CacheLookupError):
            asyncio.run(s3_store.get_signed_url(NAME, 60))


class TestPut:
    """Tests for put()."""

    def test_put_object(self, s3_store, s3_client):
        written = asyncio.run(s3_store.put(NAME, _chunks([b"ab", b"cd"]), "audio/mpeg"))

        assert written == 4
        s3_client.put_object.assert_called_once_with(
            Bucket="speech",
            Key=NAME,
            Body=b"abcd",
            ContentType="audio/mpeg",
        )

    def test_put_failure(self, s3_store, s3_client):
        s3_client.put_object.side_effect = _client_error("InternalError", "PutObject")

        with pytest.raises(PersistenceError) as exc_info:
            asyncio.run(s3_store.put(NAME, _chunks([b"ab"]), "audio/mpeg"))

        assert exc_info.value.details["bucket"] == "speech"

    def test_info_and_close(self, s3_store, s3_client):
        assert s3_store.info()["backend"] == "s3"
        assert s3_store.info()["bucket"] == "speech"

        asyncio.run(s3_store.close())
        s3_client.close.assert_called_once_with()
