"""
Tests for the chat orchestrator
"""

from unittest.mock import Mock

import pytest

from conftest import FakeLanguageModel, FakeWeatherClient
from weather_chat import conversation_store
from weather_chat.chat_orchestrator import ChatOrchestrator, generate_title
from weather_chat.conversation_store import UNTITLED_SENTINEL
from weather_chat.errors import (
    ChatProcessingError,
    ConversationAccessDenied,
    ConversationNotFound,
    MessageValidationError,
)
from weather_chat.prompts import WEATHER_ASSISTANT_PROMPT
from weather_chat.schemas import WeatherObservation
from weather_chat.weather_format import UMBRELLA_NO, UMBRELLA_YES

BOGOTA_CLEAR = WeatherObservation(place="Bogotá", temperature=22.5, weather_code=1, precipitation=0)


@pytest.fixture
def conversation(chat_db):
    return conversation_store.create_conversation("ana")


def _orchestrator(weather=None, llm=None, **kwargs):
    return ChatOrchestrator(
        weather_client=weather or FakeWeatherClient(),
        llm_client=llm or FakeLanguageModel(),
        **kwargs,
    )


class TestWeatherBranch:
    """Deterministic weather replies"""

    def test_weather_question_is_answered_from_forecast(self, conversation, seeded_rng):
        weather = FakeWeatherClient(BOGOTA_CLEAR)
        llm = FakeLanguageModel()
        engine = _orchestrator(weather, llm, rng=seeded_rng)

        result = engine.send_message("ana", conversation["id"], "¿Cómo está el clima en Bogotá?")

        assert "Clima en Bogotá" in result["message"]
        assert "Despejado" in result["message"]
        assert UMBRELLA_YES not in result["message"]
        assert UMBRELLA_NO not in result["message"]
        assert result["message"].startswith("☀️")
        assert result["is_weather"] is True
        assert weather.calls == [("Bogotá", False)]
        assert llm.calls == []

        turns = conversation_store.list_turns(conversation["id"])
        assert [(turn["role"], turn["is_weather"]) for turn in turns] == [("user", False), ("assistant", True)]

    def test_tomorrow_qualifier(self, conversation):
        weather = FakeWeatherClient(BOGOTA_CLEAR)
        engine = _orchestrator(weather)

        result = engine.send_message("ana", conversation["id"], "¿Qué tiempo hará mañana en Medellín?")

        assert "Clima en Medellín (mañana)" in result["message"]
        assert weather.calls == [("Medellín", True)]

    def test_lookup_failure_falls_back_to_model(self, conversation):
        llm = FakeLanguageModel("Según mis datos, suele llover en Lima poco.")
        engine = _orchestrator(FakeWeatherClient(None), llm, fallback_policy="model")

        result = engine.send_message("ana", conversation["id"], "¿Va a llover en Lima?")

        assert result["message"] == "Según mis datos, suele llover en Lima poco."
        assert result["is_weather"] is False
        assert llm.calls == [["¿Va a llover en Lima?"]]

    def test_lookup_failure_with_apology_policy(self, conversation):
        llm = FakeLanguageModel()
        engine = _orchestrator(FakeWeatherClient(None), llm, fallback_policy="apology")

        result = engine.send_message("ana", conversation["id"], "¿Va a llover en Lima?")

        assert result["message"].startswith("No pude obtener la información del tiempo para Lima.")
        assert result["is_weather"] is True
        assert llm.calls == []


class TestModelBranch:
    """Language model replies"""

    def test_non_weather_message(self, conversation):
        weather = FakeWeatherClient(BOGOTA_CLEAR)
        llm = FakeLanguageModel("Esta es una respuesta de prueba")
        engine = _orchestrator(weather, llm)

        result = engine.send_message("ana", conversation["id"], "Hola, ¿cómo estás?")

        assert result["message"] == "Esta es una respuesta de prueba"
        assert weather.calls == []
        stored = conversation_store.list_turns(conversation["id"])[-1]
        assert stored["role"] == "assistant"
        assert stored["is_weather"] is False

    def test_long_model_reply_is_returned_and_stored_whole(self, conversation):
        reply = "x" * 9000
        engine = _orchestrator(llm=FakeLanguageModel(reply))

        result = engine.send_message("ana", conversation["id"], "Cuéntame una historia larga")

        assert result["message"] == reply
        assert conversation_store.list_turns(conversation["id"])[-1]["content"] == reply

    def test_context_skips_weather_turns_and_does_not_repeat_message(self, conversation):
        weather = FakeWeatherClient(BOGOTA_CLEAR)
        llm = FakeLanguageModel("ok")
        engine = _orchestrator(weather, llm)

        engine.send_message("ana", conversation["id"], "Hola")
        engine.send_message("ana", conversation["id"], "clima en Bogotá")
        engine.send_message("ana", conversation["id"], "Gracias")

        assert llm.calls[-1] == ["Hola", "ok", "clima en Bogotá", "Gracias"]

    def test_role_fidelity_sends_tagged_turns(self, conversation):
        llm = FakeLanguageModel("ok")
        engine = _orchestrator(llm=llm, role_fidelity=True)

        engine.send_message("ana", conversation["id"], "Hola")
        engine.send_message("ana", conversation["id"], "Otra vez")

        assert llm.calls[-1] == [
            {"role": "user", "text": "Hola"},
            {"role": "assistant", "text": "ok"},
            {"role": "user", "text": "Otra vez"},
        ]


class TestTitles:
    """Title regeneration"""

    def test_first_message_names_the_conversation(self, conversation):
        engine = _orchestrator()

        result = engine.send_message("ana", conversation["id"], "este es un mensaje de prueba")

        assert result["chat"]["title"] == "Este es un mensaje..."

    def test_title_is_only_generated_once(self, conversation):
        engine = _orchestrator()

        engine.send_message("ana", conversation["id"], "Primera pregunta corta")
        result = engine.send_message("ana", conversation["id"], "Segunda pregunta mucho más larga que la primera")

        assert result["chat"]["title"] == "Primera pregunta corta"

    @pytest.mark.parametrize(
        "text,title",
        [
            ("hola", "Hola"),
            ("uno dos tres cuatro", "Uno dos tres cuatro"),
            ("uno  dos tres cuatro cinco", "Uno dos tres cuatro..."),
            ("¿qué tal? bien", "¿qué tal? bien"),
        ],
    )
    def test_generate_title(self, text, title):
        assert generate_title(text) == title


class TestGuards:
    """Validation, ownership and failure handling"""

    def test_unknown_conversation(self, chat_db):
        with pytest.raises(ConversationNotFound):
            _orchestrator().send_message("ana", 404, "hola")

    def test_other_users_conversation(self, conversation):
        with pytest.raises(ConversationAccessDenied):
            _orchestrator().send_message("luis", conversation["id"], "hola")
        assert conversation_store.list_turns(conversation["id"]) == []

    @pytest.mark.parametrize("content", ["", "   ", None])
    def test_empty_message_is_rejected_before_persisting(self, conversation, content):
        with pytest.raises(MessageValidationError):
            _orchestrator().send_message("ana", conversation["id"], content)
        assert conversation_store.list_turns(conversation["id"]) == []

    def test_failure_keeps_the_user_turn(self, conversation):
        llm = Mock()
        llm.generate.side_effect = RuntimeError("provider exploded")
        engine = _orchestrator(llm=llm)

        with pytest.raises(ChatProcessingError) as excinfo:
            engine.send_message("ana", conversation["id"], "Hola")

        assert excinfo.value.detail == "provider exploded"
        turns = conversation_store.list_turns(conversation["id"])
        assert [turn["role"] for turn in turns] == ["user"]
        assert conversation_store.get_conversation(conversation["id"])["title"] == UNTITLED_SENTINEL

    def test_trace_records_each_state(self, conversation):
        result = _orchestrator().send_message("ana", conversation["id"], "Hola")

        phases = [item["phase"] for item in result["trace"]]
        assert phases == [
            "received",
            "user-turn-persisted",
            "classify",
            "branch",
            "assistant-turn-persisted",
            "title-regenerated",
            "responded",
        ]


def test_custom_intent_classifier_is_used(conversation):
    from weather_chat.schemas import WeatherIntent

    classifier = Mock()
    classifier.classify.return_value = WeatherIntent(is_weather=True, place="Quito")
    weather = FakeWeatherClient(BOGOTA_CLEAR)
    engine = _orchestrator(weather, intent_extractor=classifier)

    result = engine.send_message("ana", conversation["id"], "cualquier cosa")

    assert "Clima en Quito" in result["message"]
    classifier.classify.assert_called_once_with("cualquier cosa")


def test_ask_prefixes_the_system_prompt():
    llm = FakeLanguageModel("Respuesta")
    engine = _orchestrator(llm=llm)

    assert engine.ask("  ¿Qué es El Niño? ") == "Respuesta"
    assert llm.calls == [[WEATHER_ASSISTANT_PROMPT, "¿Qué es El Niño?"]]


def test_ask_requires_a_message():
    with pytest.raises(MessageValidationError):
        _orchestrator().ask("  ")
