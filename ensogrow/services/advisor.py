"""Generative AI client with pluggable providers."""
import json
import logging
import re
from typing import Optional, Protocol

import openai
from openai import AsyncOpenAI

from ensogrow.errors import UpstreamAuthError, UpstreamParseError
from ensogrow.settings import settings

logger = logging.getLogger(__name__)

# Raw responses are logged truncated
LOG_PREVIEW_CHARS = 500


class PlantAdvisor(Protocol):
    """Protocol for text-in/text-out generative providers."""

    async def generate_text(self, prompt: str) -> str:
        """Return the model's text completion for ``prompt``."""
        ...

    async def analyze_image(self, prompt: str, image_base64: str, mime_type: str = "image/jpeg") -> str:
        """Return the model's text answer about an image."""
        ...

    async def close(self) -> None:
        ...


class OpenAIPlantAdvisor:
    """OpenAI chat-completions provider."""

    def __init__(
        self,
        api_key: str,
        model: str,
        vision_model: str,
        temperature: float,
        timeout: Optional[float] = None,
    ):
        """Initialize the shared async client."""
        self.client = AsyncOpenAI(api_key=api_key, timeout=timeout)
        self.model = model
        self.vision_model = vision_model
        self.temperature = temperature

    async def _complete(self, model: str, messages: list) -> str:
        try:
            completion = await self.client.chat.completions.create(
                model=model,
                temperature=self.temperature,
                messages=messages,
            )
        except openai.AuthenticationError as e:
            raise UpstreamAuthError(
                message="Invalid API key. Please check your AI provider API key configuration.",
                error=str(e),
                status_code=401,
            )
        except openai.PermissionDeniedError as e:
            raise UpstreamAuthError(error=str(e), status_code=403)

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise UpstreamParseError(error="No response text from AI provider")

        logger.info(f"AI response received ({len(content)} chars): {content[:LOG_PREVIEW_CHARS]}")
        return content

    async def generate_text(self, prompt: str) -> str:
        logger.info(f"Sending prompt to {self.model} ({len(prompt)} chars)")
        return await self._complete(
            self.model,
            [{"role": "user", "content": prompt}],
        )

    async def analyze_image(self, prompt: str, image_base64: str, mime_type: str = "image/jpeg") -> str:
        logger.info(f"Sending image prompt to {self.vision_model}")
        return await self._complete(
            self.vision_model,
            [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{mime_type};base64,{image_base64}"},
                        },
                    ],
                }
            ],
        )

    async def close(self) -> None:
        await self.client.close()


class LocalStubPlantAdvisor:
    """
    Deterministic stub provider for local development.

    Answers with canned, well-formed payloads shaped after what the prompt
    asks for; no external API calls are made.
    """

    _PLANT_NAME_RE = re.compile(r"Plant to grow:\s*(.+)")

    @staticmethod
    def _plant(name: str, success_rate: str) -> dict:
        return {
            "isValid": True,
            "name": name,
            "description": f"{name} is a forgiving plant for small home gardens.",
            "successRate": success_rate,
            "steps": [
                {
                    "title": "Prepare the container",
                    "description": "Fill a pot with drainage holes with fresh potting mix.",
                    "estimatedTime": "1 day",
                },
                {
                    "title": "Plant",
                    "description": f"Sow {name} seeds at the depth shown on the packet and water gently.",
                    "estimatedTime": "1 day",
                },
                {
                    "title": "Care routine",
                    "description": "Keep the soil moist but not soggy and rotate the pot weekly.",
                    "estimatedTime": "6 weeks",
                },
            ],
            "difficultyLevel": "Easy",
        }

    async def generate_text(self, prompt: str) -> str:
        if "JSON array" in prompt:
            return json.dumps([
                self._plant("Basil", "90%"),
                self._plant("Mint", "85%"),
                self._plant("Cherry Tomato", "70%"),
            ])
        match = self._PLANT_NAME_RE.search(prompt)
        name = match.group(1).strip() if match else "Basil"
        return json.dumps(self._plant(name, "80%"))

    async def analyze_image(self, prompt: str, image_base64: str, mime_type: str = "image/jpeg") -> str:
        return json.dumps({
            "needsAttention": False,
            "diagnosis": "The plant looks healthy.",
        })

    async def close(self) -> None:
        pass


def get_plant_advisor() -> PlantAdvisor:
    """
    Build the configured advisor.

    Raises:
        ValueError: If provider is 'openai' but the API key is missing
    """
    if settings.AI_PROVIDER == "openai":
        settings.validate_ai_config()
        return OpenAIPlantAdvisor(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_CHAT_MODEL,
            vision_model=settings.OPENAI_VISION_MODEL,
            temperature=settings.OPENAI_CHAT_TEMPERATURE,
            timeout=settings.OPENAI_TIMEOUT_SECONDS,
        )
    return LocalStubPlantAdvisor()
