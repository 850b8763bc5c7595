from __future__ import annotations
import json

from llm.providers.base import LLMProvider
from llm.stream_assembler import StreamResponseAssembler


class MockProvider(LLMProvider):
    """Offline provider returning canned plans; streams them as SSE frames."""

    def __init__(self, chunk_size: int = 16):
        self.chunk_size = chunk_size

    def generate(self, *, system: str, user: str, temperature: float = 0.7, max_tokens: int = 2000) -> str:
        """
        Returns dummy JSON responses based on the prompt content.
        """
        # Subtask generation asks for an estimatedTime field
        if "estimatedTime" in system:
            goal = user.splitlines()[0].removeprefix("Goal:").strip() if user else "the goal"
            return json.dumps(
                [
                    {
                        "title": f"Research what {goal} takes",
                        "priority": "not-urgent-important",
                        "suggestion": "Collect three good references",
                        "estimatedTime": "2 hours",
                    },
                    {
                        "title": "Draft a weekly plan",
                        "priority": "urgent-important",
                        "suggestion": "Block time in the calendar",
                        "estimatedTime": "1 day",
                    },
                ],
                ensure_ascii=False,
            )

        tasks = [line.strip(" -•\t") for line in user.splitlines() if line.strip(" -•\t")]
        if not tasks:
            return "[]"
        return "Here is the plan:\n```json\n" + json.dumps(
            [
                {
                    "title": t,
                    "priority": "urgent-important" if i == 0 else "not-urgent-important",
                    "suggestion": f"Start with the first step of: {t}",
                    "detail": "",
                    "eventType": "one-time",
                }
                for i, t in enumerate(tasks)
            ],
            ensure_ascii=False,
        ) + "\n```"

    def sse_frames(self, text: str) -> bytes:
        """Encode text as the byte stream a streaming endpoint would send."""
        step = max(1, self.chunk_size // 2)
        lines = [
            "data: " + json.dumps({"choices": [{"delta": {"content": text[i:i + step]}}]}, ensure_ascii=False)
            for i in range(0, len(text), step)
        ]
        lines.append("data: [DONE]")
        return ("\n\n".join(lines) + "\n").encode("utf-8")

    def generate_stream(
        self,
        *,
        system: str,
        user: str,
        assembler: StreamResponseAssembler,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> str:
        raw = self.sse_frames(self.generate(system=system, user=user))
        # fixed-size byte chunks, so multi-byte characters do get split
        for i in range(0, len(raw), self.chunk_size):
            assembler.feed(raw[i:i + self.chunk_size])
        return assembler.finish()

    def ping(self) -> None:
        return None

    def transcribe(self, audio: bytes, filename: str = "audio.webm") -> str:
        return f"transcribed {len(audio)} bytes"
