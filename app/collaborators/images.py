from __future__ import annotations

import base64
import logging
import os
from collections.abc import Mapping
from typing import Protocol

import httpx

from app.core import config

logger = logging.getLogger(__name__)

HF_INFERENCE_URL = "https://api-inference.huggingface.co/models"


class ImageGenerationError(Exception):
    pass


class ImageCollaborator(Protocol):
    async def generate(self, prompt: str) -> str: ...


class ImageGenerator:
    """Text-to-image via the OpenAI images API, then Hugging Face inference.

    Returns a ``data:`` URL. Credentials are read from the environment on
    every call.
    """

    def __init__(
        self,
        *,
        openai_base_url: str = config.OPENAI_BASE_URL,
        hf_model: str = config.IMAGE_MODEL_HF,
        environ: Mapping[str, str] | None = None,
        timeout: httpx.Timeout | None = None,
    ) -> None:
        self._openai_base_url = openai_base_url.rstrip("/")
        self._hf_model = hf_model
        self._environ = environ
        self._timeout = timeout or httpx.Timeout(120.0, connect=config.CONNECT_TIMEOUT_S)

    async def generate(self, prompt: str) -> str:
        env = os.environ if self._environ is None else self._environ
        openai_key = env.get("OPENAI_API_KEY")
        hf_token = env.get("HUGGINGFACE_API_KEY") or env.get("HF_TOKEN") or config.HUGGINGFACE_API_KEY

        if openai_key:
            try:
                return await self._openai(prompt, openai_key)
            except ImageGenerationError as exc:
                if not hf_token:
                    raise
                logger.warning("OpenAI image generation failed, falling back: %s", exc)

        if hf_token:
            return await self._huggingface(prompt, hf_token)

        raise ImageGenerationError("No image generation provider available")

    async def _openai(self, prompt: str, api_key: str) -> str:
        payload = {"prompt": prompt, "n": 1, "size": "512x512", "response_format": "b64_json"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                r = await client.post(
                    f"{self._openai_base_url}/images/generations",
                    json=payload,
                    headers={"Authorization": f"Bearer {api_key}"},
                )
                r.raise_for_status()
                b64 = r.json()["data"][0]["b64_json"]
        except httpx.HTTPStatusError as exc:
            raise ImageGenerationError(
                f"OpenAI images returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ImageGenerationError(f"OpenAI images request failed: {exc}") from exc
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ImageGenerationError("OpenAI images returned an unexpected body") from exc

        return f"data:image/png;base64,{b64}"

    async def _huggingface(self, prompt: str, token: str) -> str:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                r = await client.post(
                    f"{HF_INFERENCE_URL}/{self._hf_model}",
                    json={"inputs": prompt},
                    headers={"Authorization": f"Bearer {token}"},
                )
                r.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ImageGenerationError(
                f"Hugging Face inference returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ImageGenerationError(f"Hugging Face request failed: {exc}") from exc

        encoded = base64.b64encode(r.content).decode("ascii")
        return f"data:image/jpeg;base64,{encoded}"
