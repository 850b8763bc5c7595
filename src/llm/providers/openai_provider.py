from __future__ import annotations
import logging
import os
from typing import Optional

import httpx

from makemyday.errors import APIRequestError, ConfigurationError, EmptyResponseError
from makemyday.models import LLMConfig
from llm.prompts import CONFIG_TEST_PROMPT
from llm.stream_assembler import StreamResponseAssembler
from .base import LLMProvider

logger = logging.getLogger(__name__)

LLM_TIMEOUT_S = float(os.getenv("LLM_TIMEOUT_S", "60"))


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        message = body["error"].get("message")
        if message:
            return str(message)
    return f"API request failed: {response.status_code}"


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    message = _error_message(response)
    logger.error(f"LLM API returned {response.status_code}: {response.text[:200]}")
    raise APIRequestError(message, status_code=response.status_code)


class OpenAICompatibleProvider(LLMProvider):
    """Any endpoint speaking the OpenAI chat-completions wire format."""

    def __init__(
        self,
        config: LLMConfig,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = LLM_TIMEOUT_S,
    ):
        if not config.api_key:
            raise ConfigurationError("API key is not configured")
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.transport = transport
        self.timeout = timeout

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self.transport)

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, system: str, user: str, temperature: float, max_tokens: int, stream: bool) -> dict:
        return {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": stream,
        }

    def _post_json(self, payload: dict) -> dict:
        url = f"{self.base_url}/chat/completions"
        try:
            with self._client() as client:
                r = client.post(url, headers=self._headers(), json=payload)
        except httpx.RequestError as e:
            raise APIRequestError(f"Network request failed: {e}") from e
        _raise_for_status(r)
        try:
            return r.json()
        except ValueError as e:
            raise APIRequestError("API returned a body that is not JSON") from e

    def generate(self, *, system: str, user: str, temperature: float, max_tokens: int) -> str:
        data = self._post_json(self._payload(system, user, temperature, max_tokens, stream=False))
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not content:
            raise EmptyResponseError("AI returned an empty response")
        return content

    def generate_stream(
        self,
        *,
        system: str,
        user: str,
        assembler: StreamResponseAssembler,
        temperature: float,
        max_tokens: int,
    ) -> str:
        url = f"{self.base_url}/chat/completions"
        payload = self._payload(system, user, temperature, max_tokens, stream=True)
        try:
            with self._client() as client:
                with client.stream("POST", url, headers=self._headers(), json=payload) as r:
                    if not r.is_success:
                        r.read()
                        _raise_for_status(r)
                    for chunk in r.iter_bytes():
                        assembler.feed(chunk)
        except httpx.RequestError as e:
            raise APIRequestError(f"Network request failed: {e}") from e
        content = assembler.finish()
        logger.info(
            f"Stream finished: {len(assembler.tokens)} tokens, "
            f"{assembler.malformed_lines} malformed lines"
        )
        return content

    def ping(self) -> None:
        self._post_json(
            {
                "model": self.config.model,
                "messages": [{"role": "user", "content": CONFIG_TEST_PROMPT}],
                "max_tokens": 10,
            }
        )

    def transcribe(self, audio: bytes, filename: str = "audio.webm") -> str:
        url = f"{self.base_url}/audio/transcriptions"
        try:
            with self._client() as client:
                r = client.post(
                    url,
                    headers={"Authorization": f"Bearer {self.config.api_key}"},
                    files={"file": (filename, audio)},
                    data={"model": self.config.transcription_model},
                )
        except httpx.RequestError as e:
            raise APIRequestError(f"Network request failed: {e}") from e
        _raise_for_status(r)
        try:
            text = r.json().get("text", "")
        except (ValueError, AttributeError) as e:
            raise APIRequestError("Transcription returned an unreadable body") from e
        return (text or "").strip()
