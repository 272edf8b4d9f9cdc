import random

import pytest

from weather_chat import conversation_store
from weather_chat.schemas import WeatherObservation


@pytest.fixture
def chat_db(tmp_path, monkeypatch):
    """Point the conversation store at a throwaway SQLite file."""
    monkeypatch.setattr(conversation_store, "DB_PATH", tmp_path / "chat.db")
    conversation_store.init_store()
    return conversation_store.DB_PATH


class FakeWeatherClient:
    def __init__(self, observation: WeatherObservation | None = None):
        self.observation = observation
        self.calls = []

    def resolve(self, place, wants_tomorrow=False):
        self.calls.append((place, wants_tomorrow))
        if self.observation is None:
            return None
        return self.observation.model_copy(update={"place": place, "is_tomorrow": wants_tomorrow})


class FakeLanguageModel:
    def __init__(self, reply: str = "Respuesta de prueba"):
        self.reply = reply
        self.calls = []

    def generate(self, turns):
        self.calls.append(list(turns))
        return self.reply


@pytest.fixture
def fake_weather():
    return FakeWeatherClient()


@pytest.fixture
def fake_llm():
    return FakeLanguageModel()


@pytest.fixture
def seeded_rng():
    return random.Random(7)
