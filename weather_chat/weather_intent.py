import re

from .config import DEFAULT_WEATHER_CITY
from .schemas import WeatherIntent

WEATHER_KEYWORDS = (
    "clima",
    "tiempo",
    "temperatura",
    "llover",
    "lluvia",
    "paraguas",
    "soleado",
    "nublado",
)

WEATHER_KEYWORD_PATTERN = re.compile(
    r"\b(?:" + "|".join(WEATHER_KEYWORDS) + r")\b",
    re.IGNORECASE,
)

CITY_IN_TEXT_PATTERN = re.compile(
    r"\b(?:el clima en|el tiempo en|en|para|de)\s+([^\s,.!?¿¡;:]+(?:\s+[^\s,.!?¿¡;:]+)*)",
    re.IGNORECASE,
)

TOMORROW_PATTERN = re.compile(r"mañana|pasado mañana|día siguiente|tomorrow", re.IGNORECASE)

TRAILING_NOISE_PATTERN = re.compile(
    r"\s*\b(?:pasado mañana|mañana|hoy|ahora|ahorita|esta semana|este fin de semana|"
    r"por la tarde|por la noche|día siguiente|tomorrow|today|now)\b.*$",
    re.IGNORECASE,
)

LOWERCASE_CONNECTORS = {"de", "del", "la", "el", "los", "las", "y"}

UMBRELLA_MARKER = "paraguas"


def _sanitize_place_candidate(candidate: str) -> str:
    value = candidate.strip("`\"' \n\t")
    value = TRAILING_NOISE_PATTERN.sub("", value).strip("`\"' \n\t")
    value = re.sub(r"\s{2,}", " ", value)
    return value


def display_place(place: str) -> str:
    if place != place.lower():
        return place
    words = place.split()
    shown = []
    for index, word in enumerate(words):
        if index > 0 and word in LOWERCASE_CONNECTORS:
            shown.append(word)
        else:
            shown.append(word[:1].upper() + word[1:])
    return " ".join(shown)


class WeatherIntentExtractor:
    """Keyword and pattern based weather classifier for Spanish chat messages.

    Any object exposing ``classify(message) -> WeatherIntent`` can replace it
    in the orchestrator.
    """

    def __init__(self, default_place: str = DEFAULT_WEATHER_CITY):
        self.default_place = default_place

    def is_weather_message(self, message: str) -> bool:
        return bool(WEATHER_KEYWORD_PATTERN.search(str(message or "").lower()))

    def extract_place(self, message: str) -> str:
        # Case-insensitive search over the original text keeps the user's casing for display.
        raw = str(message or "")
        position = 0
        while True:
            match = CITY_IN_TEXT_PATTERN.search(raw, position)
            if match is None:
                return self.default_place
            candidate = _sanitize_place_candidate(match.group(1))
            if candidate:
                return display_place(candidate)
            # "para mañana en Lima": the day word empties the capture, so look for
            # a later preposition inside it.
            position = match.start(1)

    def wants_tomorrow(self, message: str) -> bool:
        return bool(TOMORROW_PATTERN.search(str(message or "")))

    def asks_umbrella(self, message: str) -> bool:
        return UMBRELLA_MARKER in str(message or "").lower()

    def classify(self, message: str) -> WeatherIntent:
        if not self.is_weather_message(message):
            return WeatherIntent(is_weather=False)
        return WeatherIntent(
            is_weather=True,
            place=self.extract_place(message),
            wants_tomorrow=self.wants_tomorrow(message),
            asks_umbrella=self.asks_umbrella(message),
        )
