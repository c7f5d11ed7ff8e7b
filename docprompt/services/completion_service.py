"""Groq chat completions through the OpenAI SDK.

Groq exposes an OpenAI-compatible API, so the stock client is pointed at its
base URL. Calls are made once: no SDK retries, no backoff.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
import openai

from ..errors import ConfigurationError, UpstreamEmptyResponse, UpstreamError
from ..models import CompletionRequest, Extraction, ProcessingSettings

logger = logging.getLogger(__name__)

SERVICE = "Groq API"


def text_user_content(prompt: str, content: str) -> str:
    return f"Instruction: '{prompt}'\n\nContent:\n{content}"


def build_messages(system_prompt: str, prompt: str, extraction: Extraction) -> List[Dict[str, Any]]:
    if extraction.is_image:
        user: Any = [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": extraction.data_url()}},
        ]
    else:
        user = text_user_content(prompt, extraction.text)
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user},
    ]


def build_request(settings: ProcessingSettings, prompt: str, extraction: Extraction) -> CompletionRequest:
    return CompletionRequest(
        model=settings.vision_model if extraction.is_image else settings.text_model,
        messages=build_messages(settings.system_prompt, prompt, extraction),
        temperature=0.0,
        max_tokens=settings.max_tokens,
    )


class CompletionClient:

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.groq.com/openai/v1",
        timeout: float = 60.0,
        client: Optional[openai.OpenAI] = None,
    ):
        self.api_key = (api_key or "").strip()
        self._client = client
        self._base_url = base_url
        self._timeout = timeout

    def _get_client(self) -> openai.OpenAI:
        if self._client is None:
            if not self.api_key:
                raise ConfigurationError("GROQ_API_KEY is not set in environment variables")
            self._client = openai.OpenAI(
                api_key=self.api_key,
                base_url=self._base_url,
                timeout=self._timeout,
                max_retries=0,
            )
        return self._client

    def complete(self, request: CompletionRequest) -> str:
        client = self._get_client()
        logger.info("Sending to Groq (model=%s)", request.model)
        try:
            res = client.chat.completions.create(
                model=request.model,
                messages=request.messages,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
            )
        except openai.APIStatusError as e:
            raise UpstreamError(SERVICE, str(e), e.status_code, e.response.text) from e
        except (openai.APIConnectionError, httpx.TimeoutException) as e:
            raise UpstreamError(SERVICE, f"{type(e).__name__}: {e}") from e

        if not res.choices:
            raise UpstreamEmptyResponse("No output text received from Groq")
        text = (res.choices[0].message.content or "").strip()
        if not text:
            raise UpstreamEmptyResponse("No output text received from Groq")
        return text
