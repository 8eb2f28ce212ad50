import logging
from typing import Optional
from datetime import datetime, timezone
from google import genai
from google.genai import types

from ..errors import CompletionProviderError
from ..settings import settings

logger = logging.getLogger("fitpantry.ai")

# Chat roles -> Gemini content roles
_ROLE_MAP = {"user": "user", "assistant": "model"}


class AIClient:
    """Text completion over Gemini with the caller's own API key.

    ``complete`` takes ``[{"role": "system"|"user"|"assistant", "content": str}]``
    and returns the assistant text. Any provider failure, timeout or empty
    reply raises CompletionProviderError. No retries happen here.
    """
    _instance = None

    def __init__(self):
        self.mode = settings.ai_mode  # "mock" or "gemini"
        self.last_error: Optional[str] = None
        self.last_error_at: Optional[datetime] = None

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @property
    def source(self) -> str:
        return "mock" if self.mode == "mock" else "ai"

    def complete(self, messages: list[dict], api_key: str, model: Optional[str] = None) -> str:
        if self.mode == "mock":
            return self._mock_completion(messages)

        model_id = model or settings.gemini_text_model
        system_instruction, contents = self._to_contents(messages)

        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=settings.completion_temperature,
            top_p=settings.completion_top_p,
            max_output_tokens=settings.completion_max_tokens,
        )

        try:
            client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=settings.completion_timeout_ms),
            )
            response = client.models.generate_content(
                model=model_id,
                contents=contents,
                config=config,
            )
        except Exception as e:
            self.last_error = f"{e.__class__.__name__}: {str(e)}"
            self.last_error_at = datetime.now(timezone.utc)
            logger.error(f"Gemini completion failed: {e.__class__.__name__}")
            raise CompletionProviderError(self.last_error) from e

        text = (response.text or "").strip()
        if not text:
            logger.warning("Gemini returned empty response")
            raise CompletionProviderError("Empty response from AI service")
        return text

    @staticmethod
    def _to_contents(messages: list[dict]) -> tuple[Optional[str], list[types.Content]]:
        system_parts = []
        contents = []
        for msg in messages:
            role = msg["role"]
            if role == "system":
                system_parts.append(msg["content"])
                continue
            contents.append(
                types.Content(role=_ROLE_MAP[role], parts=[types.Part(text=msg["content"])])
            )
        system_instruction = "\n\n".join(system_parts) if system_parts else None
        return system_instruction, contents

    def _mock_completion(self, messages: list[dict]) -> str:
        """Deterministic reply for local dev and tests."""
        last_user = next(
            (m["content"] for m in reversed(messages) if m["role"] == "user"), ""
        )
        return f"Here is a mock answer for: {last_user}"


# Singleton instance access
ai_client = AIClient.get_instance()
