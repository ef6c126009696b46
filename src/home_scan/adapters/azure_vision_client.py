"""Azure AI Vision image analysis client."""

from dataclasses import dataclass

import httpx

from home_scan.domain.analysis import BoundingBox, DetectedObject, Tag, VisionSignals
from home_scan.services.assessment import ImageTaggingClient

API_VERSION = "2024-02-01"
VISUAL_FEATURES = ("caption", "denseCaptions", "tags", "objects", "read")
NO_CAPTION = "No caption available"


@dataclass
class HttpxAzureVisionClient(ImageTaggingClient):
    """HTTPX-backed Azure AI Vision 4.0 client."""

    endpoint: str
    api_key: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, endpoint: str, api_key: str) -> "HttpxAzureVisionClient":
        """Create a vision client with a managed httpx session."""
        return cls(
            endpoint=endpoint.rstrip("/"),
            api_key=api_key,
            http_client=httpx.AsyncClient(),
        )

    async def analyze(self, image_bytes: bytes) -> VisionSignals:
        """Analyze raw image bytes and return extracted signals."""
        response = await self.http_client.post(
            f"{self.endpoint}/computervision/imageanalysis:analyze",
            params={
                "api-version": API_VERSION,
                "features": ",".join(VISUAL_FEATURES),
                "language": "en",
            },
            headers={
                "Ocp-Apim-Subscription-Key": self.api_key,
                "Content-Type": "application/octet-stream",
            },
            content=image_bytes,
            timeout=30,
        )
        response.raise_for_status()
        return parse_vision_response(response.json())

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def parse_vision_response(payload: dict[str, object]) -> VisionSignals:
    """Extract tags, caption and named objects from an analysis response.

    Objects use the 4.0 ``tags`` shape when present and fall back to the
    legacy ``object``/``confidence``/``rectangle`` fields. Objects without a
    name are dropped.
    """
    tags = [
        Tag(name=str(tag["name"]), confidence=float(tag.get("confidence") or 0))
        for tag in _values(payload.get("tagsResult"))
        if tag.get("name")
    ]
    caption_result = payload.get("captionResult")
    caption = NO_CAPTION
    if isinstance(caption_result, dict) and caption_result.get("text"):
        caption = str(caption_result["text"])

    objects: list[DetectedObject] = []
    for raw in _values(payload.get("objectsResult")):
        object_tags = raw.get("tags")
        first_tag: dict[str, object] = {}
        if isinstance(object_tags, list) and object_tags:
            first_tag = _as_dict(object_tags[0])
        name = first_tag.get("name") or raw.get("object")
        if not name:
            continue
        confidence = first_tag.get("confidence") or raw.get("confidence") or 0
        box = raw.get("boundingBox") or raw.get("rectangle")
        objects.append(
            DetectedObject(
                name=str(name),
                confidence=float(confidence),
                bounding_box=_bounding_box(box),
            )
        )
    return VisionSignals(tags=tags, caption=caption, detected_objects=objects)


def _values(section: object) -> list[dict[str, object]]:
    if not isinstance(section, dict):
        return []
    values = section.get("values")
    if not isinstance(values, list):
        return []
    return [value for value in values if isinstance(value, dict)]


def _bounding_box(box: object) -> BoundingBox | None:
    if not isinstance(box, dict) or not all(key in box for key in "xywh"):
        return None
    return BoundingBox(x=box["x"], y=box["y"], w=box["w"], h=box["h"])


def _as_dict(value: object) -> dict[str, object]:
    return value if isinstance(value, dict) else {}
