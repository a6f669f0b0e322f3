"""
Vision Language Client
======================

Thin async wrapper around the Anthropic Messages API used for both
angle classification and traffic answers.

This module:
    - Builds multi-image user messages from encoded frames
    - Exposes single-shot `complete` and incremental `stream` calls
    - Converts SDK errors into GenerationError

Design Rules:
    - No prompt logic here; callers own their instructions
    - Never retries; callers decide how to degrade
"""

import base64
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Sequence

import anthropic


logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """Raised when the language model call fails."""
    pass


@dataclass(frozen=True, slots=True)
class ImageInput:
    """Encoded image attached to a request."""

    data: bytes
    media_type: str = "image/jpeg"


class VisionLanguageClient(Protocol):
    """
    Protocol for vision-capable language model backends.

    Implemented by AnthropicVisionClient and by test fakes.
    """

    async def complete(
        self,
        system: str,
        images: Sequence[ImageInput],
        prompt: str,
        max_tokens: int,
    ) -> str:
        ...

    def stream(
        self,
        system: str,
        images: Sequence[ImageInput],
        prompt: str,
        max_tokens: int,
    ) -> AsyncIterator[str]:
        ...


def build_content(images: Sequence[ImageInput], prompt: str) -> List[Dict[str, Any]]:
    """Message content blocks: every image first, then the text."""
    content: List[Dict[str, Any]] = []
    for image in images:
        content.append({
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": image.media_type,
                "data": base64.b64encode(image.data).decode("ascii"),
            },
        })
    content.append({"type": "text", "text": prompt})
    return content


class AnthropicVisionClient:
    """
    Anthropic-backed vision language client.

    Attributes:
        model: Model identifier sent with every request
        call_count: Successful calls made
        error_count: Failed calls
    """

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ) -> None:
        self.model = model
        self._client = client or anthropic.AsyncAnthropic(
            api_key=api_key,
            timeout=timeout,
            max_retries=0,
        )
        self.call_count: int = 0
        self.error_count: int = 0

        logger.info(f"AnthropicVisionClient initialized: model={model}")

    async def complete(
        self,
        system: str,
        images: Sequence[ImageInput],
        prompt: str,
        max_tokens: int,
    ) -> str:
        """
        Single-shot generation.

        Returns:
            Concatenated text of the response

        Raises:
            GenerationError: On any API or transport failure
        """
        try:
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                system=system,
                messages=[{"role": "user", "content": build_content(images, prompt)}],
            )
        except anthropic.APIError as e:
            self.error_count += 1
            raise GenerationError(str(e)) from e

        self.call_count += 1
        return "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

    async def stream(
        self,
        system: str,
        images: Sequence[ImageInput],
        prompt: str,
        max_tokens: int,
    ) -> AsyncIterator[str]:
        """
        Incremental generation.

        Yields:
            Text deltas as they arrive

        Raises:
            GenerationError: On any API or transport failure
        """
        try:
            async with self._client.messages.stream(
                model=self.model,
                max_tokens=max_tokens,
                system=system,
                messages=[{"role": "user", "content": build_content(images, prompt)}],
            ) as stream:
                async for text in stream.text_stream:
                    yield text
        except anthropic.APIError as e:
            self.error_count += 1
            raise GenerationError(str(e)) from e

        self.call_count += 1

    async def close(self) -> None:
        await self._client.close()

    def get_metrics(self) -> dict:
        return {
            "model": self.model,
            "call_count": self.call_count,
            "error_count": self.error_count,
        }
