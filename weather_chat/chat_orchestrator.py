import logging
import random
from typing import Any

from . import conversation_store
from .config import LLM_ROLE_FIDELITY, WEATHER_FALLBACK_POLICY
from .context_builder import build_context, build_role_context
from .errors import (
    ChatProcessingError,
    ConversationAccessDenied,
    ConversationNotFound,
    MessageValidationError,
)
from .llm_service import LanguageModelClient
from .prompts import WEATHER_ASSISTANT_PROMPT
from .weather_format import format_weather_reply, format_weather_unavailable
from .weather_intent import WeatherIntentExtractor
from .weather_service import WeatherLookupClient

LOGGER = logging.getLogger("weather_chat.orchestrator")

PROCESSING_FAILURE_MESSAGE = "Error al procesar la solicitud"
TITLE_WORD_LIMIT = 4


def generate_title(text: str) -> str:
    words = str(text or "").split()
    title = " ".join(words[:TITLE_WORD_LIMIT])
    title = title[:1].upper() + title[1:]
    if len(words) > TITLE_WORD_LIMIT:
        title += "..."
    return title


def _trace_step(trace: list[dict[str, Any]], phase: str, detail: dict[str, Any]) -> None:
    item = {
        "step": len(trace) + 1,
        "phase": phase,
        "detail": detail,
    }
    trace.append(item)
    LOGGER.info("chat_trace step=%s phase=%s detail=%s", item["step"], phase, detail)


class ChatOrchestrator:
    """Turns one inbound chat message into a persisted reply.

    The user turn is stored before any branching. Weather questions with
    resolvable data are answered from the forecast provider, everything else
    goes to the language model. The first reply in an untitled conversation
    names it after the user's message.
    """

    def __init__(
        self,
        weather_client: WeatherLookupClient | None = None,
        llm_client: LanguageModelClient | None = None,
        intent_extractor: Any | None = None,
        rng: random.Random | None = None,
        fallback_policy: str = WEATHER_FALLBACK_POLICY,
        role_fidelity: bool = LLM_ROLE_FIDELITY,
    ):
        self.weather_client = weather_client or WeatherLookupClient()
        self.llm_client = llm_client or LanguageModelClient()
        self.intent_extractor = intent_extractor or WeatherIntentExtractor()
        self.rng = rng or random.Random()
        self.fallback_policy = fallback_policy if fallback_policy in {"model", "apology"} else "model"
        self.role_fidelity = role_fidelity

    def authorize(self, user_id: str, conversation_id: int) -> dict[str, Any]:
        conversation = conversation_store.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFound(conversation_id)
        if conversation["user_id"] != user_id:
            raise ConversationAccessDenied(conversation_id)
        return conversation

    def _weather_reply(self, message: str, trace: list[dict[str, Any]]) -> str | None:
        intent = self.intent_extractor.classify(message)
        _trace_step(
            trace,
            "classify",
            {
                "is_weather": intent.is_weather,
                "place": intent.place,
                "wants_tomorrow": intent.wants_tomorrow,
                "asks_umbrella": intent.asks_umbrella,
            },
        )
        if not intent.is_weather:
            return None

        observation = self.weather_client.resolve(intent.place, intent.wants_tomorrow)
        if observation is None:
            _trace_step(trace, "weather-lookup", {"status": "unavailable", "policy": self.fallback_policy})
            if self.fallback_policy == "apology":
                return format_weather_unavailable(intent.place)
            return None

        _trace_step(
            trace,
            "weather-lookup",
            {
                "status": "ok",
                "weather_code": observation.weather_code,
                "is_tomorrow": observation.is_tomorrow,
            },
        )
        return format_weather_reply(observation, intent, rng=self.rng)

    def _model_reply(self, conversation_id: int, message: str, user_turn_id: int) -> str:
        turns = conversation_store.list_turns(conversation_id)
        if self.role_fidelity:
            context = build_role_context(turns, message, exclude_turn_id=user_turn_id)
        else:
            context = build_context(turns, message, exclude_turn_id=user_turn_id)
        return self.llm_client.generate(context)

    def send_message(self, user_id: str, conversation_id: int, content: str | None) -> dict[str, Any]:
        trace: list[dict[str, Any]] = []
        self.authorize(user_id, conversation_id)

        message = str(content or "").strip()
        if not message:
            raise MessageValidationError("El contenido del mensaje es obligatorio")
        _trace_step(trace, "received", {"conversation_id": conversation_id, "length": len(message)})

        user_turn = conversation_store.append_turn(conversation_id, "user", str(content))
        _trace_step(trace, "user-turn-persisted", {"turn_id": user_turn["id"]})

        try:
            reply = self._weather_reply(message, trace)
            is_weather = reply is not None
            if reply is None:
                reply = self._model_reply(conversation_id, message, user_turn["id"])
            _trace_step(trace, "branch", {"branch": "weather" if is_weather else "model"})

            assistant_turn = conversation_store.append_turn(conversation_id, "assistant", reply, is_weather=is_weather)
            _trace_step(trace, "assistant-turn-persisted", {"turn_id": assistant_turn["id"]})

            renamed = conversation_store.rename_if_untitled(conversation_id, generate_title(message))
            _trace_step(trace, "title-regenerated" if renamed else "title-unchanged", {})

            conversation = conversation_store.get_conversation(conversation_id)
        except Exception as exc:
            LOGGER.exception(
                "chat message processing failed conversation=%s user_turn=%s",
                conversation_id,
                user_turn["id"],
            )
            raise ChatProcessingError(PROCESSING_FAILURE_MESSAGE, detail=str(exc)) from exc

        _trace_step(trace, "responded", {"is_weather": is_weather})
        return {
            "chat_id": conversation_id,
            "message": assistant_turn["content"],
            "is_weather": is_weather,
            "chat": conversation,
            "trace": trace,
        }

    def ask(self, message: str | None) -> str:
        text = str(message or "").strip()
        if not text:
            raise MessageValidationError("El mensaje es obligatorio")
        return self.llm_client.generate([WEATHER_ASSISTANT_PROMPT, text])
