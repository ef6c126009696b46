"""Tests for HTTP-based adapters."""

import asyncio
import json

import httpx
import pytest

from home_scan.adapters.azure_vision_client import (
    NO_CAPTION,
    HttpxAzureVisionClient,
    parse_vision_response,
)
from home_scan.adapters.openai_report_client import OpenAIReportClient


class _FakeResponses:
    def __init__(self, output_text: str) -> None:
        self.output_text = output_text
        self.last_payload: dict[str, object] | None = None

    async def create(self, **kwargs):  # type: ignore[no-untyped-def]
        self.last_payload = kwargs
        return type("Resp", (), {"output_text": self.output_text})()


class _FakeOpenAI:
    def __init__(self, output_text: str = '{"header": {}}') -> None:
        self.responses = _FakeResponses(output_text)


def _generate(client: OpenAIReportClient) -> str:
    return asyncio.run(
        client.generate_report(
            model="gpt-4o",
            system_prompt="You are a home security auditor.",
            prompt="Analyze these 2 property images",
            image_data_urls=[
                "data:image/jpeg;base64,ZmFrZQ==",
                "data:image/png;base64,ZmFrZQ==",
            ],
            temperature=0.3,
            max_output_tokens=3000,
        )
    )


def test_openai_report_client_sends_all_images() -> None:
    fake = _FakeOpenAI()
    client = OpenAIReportClient(client=fake)

    result = _generate(client)

    assert result == '{"header": {}}'
    payload = fake.responses.last_payload
    assert payload["instructions"] == "You are a home security auditor."
    assert payload["temperature"] == 0.3
    assert payload["max_output_tokens"] == 3000
    content = payload["input"][0]["content"]
    assert content[0] == {
        "type": "input_text",
        "text": "Analyze these 2 property images",
    }
    assert [item["type"] for item in content[1:]] == ["input_image", "input_image"]


def test_openai_report_client_rejects_empty_output() -> None:
    client = OpenAIReportClient(client=_FakeOpenAI(output_text=""))

    with pytest.raises(RuntimeError, match="empty response"):
        _generate(client)


def test_azure_vision_client_posts_image_bytes() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "captionResult": {"text": "a front door", "confidence": 0.8},
                "tagsResult": {"values": [{"name": "door", "confidence": 0.99}]},
            },
        )

    transport = httpx.MockTransport(handler)
    async_client = httpx.AsyncClient(transport=transport)
    client = HttpxAzureVisionClient(
        endpoint="https://vision.example.com",
        api_key="azure-key",
        http_client=async_client,
    )

    signals = asyncio.run(client.analyze(b"image-bytes"))

    request = seen[0]
    assert request.url.path == "/computervision/imageanalysis:analyze"
    assert request.url.params["api-version"] == "2024-02-01"
    assert "objects" in request.url.params["features"].split(",")
    assert request.headers["Ocp-Apim-Subscription-Key"] == "azure-key"
    assert request.content == b"image-bytes"
    assert signals.caption == "a front door"
    assert signals.tags[0].name == "door"


def test_azure_vision_client_raises_on_error_status() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(401))
    client = HttpxAzureVisionClient(
        endpoint="https://vision.example.com",
        api_key="bad-key",
        http_client=httpx.AsyncClient(transport=transport),
    )

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client.analyze(b"image-bytes"))


def test_parse_vision_response_reads_both_object_shapes() -> None:
    payload = json.loads(
        """
        {
          "objectsResult": {
            "values": [
              {
                "boundingBox": {"x": 1, "y": 2, "w": 30, "h": 40},
                "tags": [{"name": "door", "confidence": 0.91}]
              },
              {"object": "window", "confidence": 0.7},
              {"tags": []},
              "garbage"
            ]
          }
        }
        """
    )

    signals = parse_vision_response(payload)

    assert signals.caption == NO_CAPTION
    assert signals.tags == []
    assert [(obj.name, obj.confidence) for obj in signals.detected_objects] == [
        ("door", 0.91),
        ("window", 0.7),
    ]
    assert signals.detected_objects[0].bounding_box.w == 30
    assert signals.detected_objects[1].bounding_box is None
