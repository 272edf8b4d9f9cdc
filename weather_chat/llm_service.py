import logging
from collections.abc import Sequence
from typing import Any

import requests

from .config import GEMINI_API_KEY, GEMINI_API_URL, GEMINI_MODEL, HTTP_TIMEOUT_SECONDS

LOGGER = logging.getLogger("weather_chat.llm")

LLM_FAILURE_REPLY = "Lo siento, no pude generar una respuesta."
LLM_EMPTY_REPLY = "No se pudo obtener una respuesta."

PROVIDER_ROLES = {"user": "user", "assistant": "model"}


def _clean_response(text: str) -> str:
    return str(text or "").strip()


def _extract_candidate_text(payload: Any) -> str | None:
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (TypeError, KeyError, IndexError):
        return None
    if not isinstance(text, str):
        return None
    return text


class LanguageModelClient:
    """Thin client for the Gemini ``generateContent`` endpoint.

    ``generate`` never raises: transport and provider failures come back as a
    fixed apology.
    """

    def __init__(
        self,
        api_key: str | None = GEMINI_API_KEY,
        model: str = GEMINI_MODEL,
        base_url: str = GEMINI_API_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def build_payload(self, turns: Sequence[str | dict[str, str]]) -> dict[str, Any]:
        if turns and all(isinstance(turn, dict) for turn in turns):
            return {
                "contents": [
                    {
                        "role": PROVIDER_ROLES.get(str(turn.get("role") or "user"), "user"),
                        "parts": [{"text": str(turn.get("text") or "")}],
                    }
                    for turn in turns
                ]
            }
        parts = []
        for turn in turns:
            text = turn.get("text") if isinstance(turn, dict) else turn
            parts.append({"text": str(text or "")})
        return {"contents": [{"parts": parts}]}

    def generate(self, turns: Sequence[str | dict[str, str]]) -> str:
        if not self.api_key:
            LOGGER.warning("language model key missing, returning fallback reply")
            return LLM_FAILURE_REPLY

        try:
            response = requests.post(
                self.endpoint,
                params={"key": self.api_key},
                json=self.build_payload(turns),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            LOGGER.warning("language model request failed endpoint=%s error=%s", self.endpoint, exc)
            return LLM_FAILURE_REPLY

        if not response.ok:
            LOGGER.warning(
                "language model error endpoint=%s status=%s body=%s",
                self.endpoint,
                response.status_code,
                str(response.text or "")[:500],
            )
            return LLM_FAILURE_REPLY

        try:
            payload = response.json()
        except ValueError:
            LOGGER.warning("language model returned invalid JSON endpoint=%s", self.endpoint)
            return LLM_EMPTY_REPLY

        text = _extract_candidate_text(payload)
        if text is None:
            LOGGER.warning("language model response without candidate text endpoint=%s", self.endpoint)
            return LLM_EMPTY_REPLY
        return _clean_response(text)
