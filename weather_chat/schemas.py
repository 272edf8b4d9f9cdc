from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WeatherIntent(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_weather: bool = False
    place: str | None = None
    wants_tomorrow: bool = False
    asks_umbrella: bool = False


class WeatherObservation(BaseModel):
    model_config = ConfigDict(frozen=True)

    place: str
    temperature: float | None = None
    weather_code: int | None = None
    precipitation: float = 0.0
    is_tomorrow: bool = False


class SendMessageRequest(BaseModel):
    content: str | None = Field(default=None, max_length=4000)


class AskRequest(BaseModel):
    message: str | None = Field(default=None, max_length=4000)


class AskResponse(BaseModel):
    reply: str


class ConversationOut(BaseModel):
    id: int
    user_id: str
    title: str
    created_at: str
    updated_at: str


class TurnOut(BaseModel):
    id: int
    conversation_id: int
    role: str
    content: str
    is_weather: bool = False
    created_at: str


class ConversationDetail(BaseModel):
    chat: ConversationOut
    messages: list[TurnOut] = Field(default_factory=list)


class SendMessageResponse(BaseModel):
    chat_id: int
    message: str
    is_weather: bool = False
    chat: ConversationOut
    trace: list[dict[str, Any]] = Field(default_factory=list)
