"""OpenAI Responses API client for security report generation."""

from dataclasses import dataclass

from openai import AsyncOpenAI

from home_scan.services.assessment import SecurityReportClient


@dataclass
class OpenAIReportClient(SecurityReportClient):
    """Report client backed by the OpenAI Responses API."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str, base_url: str | None = None) -> "OpenAIReportClient":
        """Create an OpenAI report client."""
        return cls(client=AsyncOpenAI(api_key=api_key, base_url=base_url))

    async def generate_report(  # noqa: PLR0913
        self,
        *,
        model: str,
        system_prompt: str,
        prompt: str,
        image_data_urls: list[str],
        temperature: float,
        max_output_tokens: int,
    ) -> str:
        """Send the prompt with every image and return the model's text."""
        content: list[dict[str, object]] = [{"type": "input_text", "text": prompt}]
        content.extend(
            {"type": "input_image", "image_url": url, "detail": "high"}
            for url in image_data_urls
        )
        response = await self.client.responses.create(
            model=model,
            instructions=system_prompt,
            input=[{"role": "user", "content": content}],
            temperature=temperature,
            max_output_tokens=max_output_tokens,
        )
        output_text = response.output_text
        if not output_text:
            raise RuntimeError("OpenAI returned an empty response")
        return output_text

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()
