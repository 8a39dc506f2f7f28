import httpx
import pytest

from attendance_api.exceptions import (
    FeatureExtractionFailed,
    NoFaceDetected,
    OutcomeKind,
    UpstreamFailure,
)
from attendance_api.services.embedding import EmbeddingClient


def client_for(handler):
    return EmbeddingClient("http://embedder.local/detect", transport=httpx.MockTransport(handler))


async def test_detect_returns_first_face_embedding():
    seen = {}

    def handler(request: httpx.Request):
        seen["body"] = request.read()
        return httpx.Response(
            200, json={"faces": [{"embedding": [0.1, 0.2, 0.3]}, {"embedding": [9, 9, 9]}]}
        )

    client = client_for(handler)
    descriptor = await client.detect("aGVsbG8=")
    await client.close()

    assert descriptor == [0.1, 0.2, 0.3]
    assert b"aGVsbG8=" in seen["body"]


async def test_no_face_is_reported_distinctly():
    client = client_for(lambda request: httpx.Response(200, json={"faces": []}))
    with pytest.raises(NoFaceDetected) as exc_info:
        await client.detect("aGVsbG8=")
    assert exc_info.value.kind == OutcomeKind.NO_FACE_DETECTED


async def test_face_without_embedding_is_extraction_failure():
    client = client_for(lambda request: httpx.Response(200, json={"faces": [{"embedding": []}]}))
    with pytest.raises(FeatureExtractionFailed):
        await client.detect("aGVsbG8=")


async def test_server_error_is_upstream_failure():
    client = client_for(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(UpstreamFailure):
        await client.detect("aGVsbG8=")


async def test_transport_error_is_upstream_failure():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = client_for(handler)
    with pytest.raises(UpstreamFailure):
        await client.detect("aGVsbG8=")


async def test_unconfigured_service_is_upstream_failure():
    client = EmbeddingClient("")
    with pytest.raises(UpstreamFailure) as exc_info:
        await client.detect("aGVsbG8=")
    assert "EMBEDDING_SERVICE_URL" in exc_info.value.hint
    await client.close()
