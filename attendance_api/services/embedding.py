from typing import List, Optional

import httpx

from attendance_api.config import settings
from attendance_api.exceptions import (
    FeatureExtractionFailed,
    NoFaceDetected,
    UpstreamFailure,
)
from attendance_api.utils.logging import get_logger

logger = get_logger(__name__)


class EmbeddingClient:
    """
    Client for the external face embedding service.

    The service receives ``{"image": "<base64>"}`` and answers with
    ``{"faces": [{"embedding": [...]}, ...]}``. Only the first face is used.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def detect(self, image_base64: str) -> List[float]:
        if not self.base_url:
            raise UpstreamFailure(
                "Face embedding service is not configured",
                hint="Set EMBEDDING_SERVICE_URL or send a face descriptor",
            )

        try:
            response = await self.client.post(self.base_url, json={"image": image_base64})
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"Face embedding service call failed: {exc}")
            raise UpstreamFailure(
                "Failed to process face image on server",
                hint="Please try capturing the image again with better lighting",
            ) from exc

        faces = payload.get("faces") if isinstance(payload, dict) else None
        if not faces:
            raise NoFaceDetected()

        embedding = faces[0].get("embedding") if isinstance(faces[0], dict) else None
        if not embedding:
            raise FeatureExtractionFailed()

        try:
            descriptor = [float(v) for v in embedding]
        except (TypeError, ValueError) as exc:
            raise FeatureExtractionFailed() from exc

        logger.info(f"Face descriptor extracted, length: {len(descriptor)}")
        return descriptor

    async def close(self) -> None:
        await self.client.aclose()


def build_embedding_client() -> EmbeddingClient:
    return EmbeddingClient(
        settings.EMBEDDING_SERVICE_URL,
        timeout=settings.EMBEDDING_SERVICE_TIMEOUT_SECONDS,
    )
