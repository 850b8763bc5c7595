from __future__ import annotations
from abc import ABC, abstractmethod

from llm.stream_assembler import StreamResponseAssembler


class LLMProvider(ABC):
    @abstractmethod
    def generate(self, *, system: str, user: str, temperature: float, max_tokens: int) -> str:
        """
        Must return the model output as TEXT (JSON is parsed by the caller).
        """
        raise NotImplementedError

    @abstractmethod
    def generate_stream(
        self,
        *,
        system: str,
        user: str,
        assembler: StreamResponseAssembler,
        temperature: float,
        max_tokens: int,
    ) -> str:
        """
        Stream the completion into ``assembler`` and return its full content.
        """
        raise NotImplementedError

    @abstractmethod
    def ping(self) -> None:
        """Cheapest possible request; raises when the endpoint is unusable."""
        raise NotImplementedError

    def transcribe(self, audio: bytes, filename: str = "audio.webm") -> str:
        raise NotImplementedError(f"{type(self).__name__} does not support transcription")
