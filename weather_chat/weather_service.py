import logging
from typing import Any

import requests

from .config import (
    FORECAST_API_URL,
    GEOCODING_API_URL,
    HTTP_TIMEOUT_SECONDS,
    HTTP_USER_AGENT,
    TRANSIENT_STATUS_CODES,
)
from .schemas import WeatherObservation

LOGGER = logging.getLogger("weather_chat.weather")

TODAY_INDEX = 0
TOMORROW_INDEX = 1
DAILY_FIELDS = "weathercode,temperature_2m_max,temperature_2m_min,precipitation_sum"


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _as_int(value: Any) -> int | None:
    number = _as_float(value)
    return int(number) if number is not None else None


def _daily_value(daily: dict[str, Any], key: str, index: int) -> Any:
    values = daily.get(key)
    if not isinstance(values, list) or len(values) <= index:
        return None
    return values[index]


def _body_preview(response: requests.Response) -> str:
    return str(getattr(response, "text", "") or "")[:300]


class WeatherLookupClient:
    """Resolves a place name to coordinates and reads today's or tomorrow's conditions.

    Every failure (transport error, timeout, bad status, malformed payload) is
    logged and reported as ``None`` so callers can fall back.
    """

    def __init__(
        self,
        geocoding_url: str = GEOCODING_API_URL,
        forecast_url: str = FORECAST_API_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        user_agent: str = HTTP_USER_AGENT,
        attempts: int = 2,
    ):
        self.geocoding_url = geocoding_url
        self.forecast_url = forecast_url
        self.timeout = timeout
        self.user_agent = user_agent
        self.attempts = max(1, int(attempts))

    def _request(self, endpoint_url: str, params: dict[str, Any]) -> requests.Response | None:
        last_response = None
        for attempt in range(1, self.attempts + 1):
            try:
                response = requests.get(
                    endpoint_url,
                    params=params,
                    headers={"User-Agent": self.user_agent},
                    timeout=self.timeout,
                )
            except requests.RequestException as exc:
                LOGGER.warning("weather request failed endpoint=%s attempt=%s error=%s", endpoint_url, attempt, exc)
                continue
            last_response = response
            if response.status_code in TRANSIENT_STATUS_CODES:
                continue
            return response
        return last_response

    def _fetch_json(self, endpoint_url: str, params: dict[str, Any], subject: str) -> Any | None:
        response = self._request(endpoint_url, params)
        if response is None:
            LOGGER.warning("weather provider unreachable endpoint=%s subject=%s", endpoint_url, subject)
            return None
        if response.status_code != 200:
            LOGGER.warning(
                "weather provider error endpoint=%s status=%s subject=%s body=%s",
                endpoint_url,
                response.status_code,
                subject,
                _body_preview(response),
            )
            return None
        try:
            return response.json()
        except ValueError:
            LOGGER.warning("weather provider returned invalid JSON endpoint=%s subject=%s", endpoint_url, subject)
            return None

    def geocode(self, place: str) -> tuple[float, float] | None:
        query = str(place or "").strip()
        if not query:
            return None
        payload = self._fetch_json(
            self.geocoding_url,
            {"q": query, "format": "json", "limit": 1, "accept-language": "es"},
            subject=query,
        )
        if not isinstance(payload, list) or not payload or not isinstance(payload[0], dict):
            LOGGER.info("geocoding found no match place=%s", query)
            return None
        lat = _as_float(payload[0].get("lat"))
        lon = _as_float(payload[0].get("lon"))
        if lat is None or lon is None:
            LOGGER.warning("geocoding match without coordinates place=%s", query)
            return None
        return lat, lon

    def fetch_forecast(self, latitude: float, longitude: float, wants_tomorrow: bool) -> dict[str, Any] | None:
        params: dict[str, Any] = {
            "latitude": latitude,
            "longitude": longitude,
            "timezone": "auto",
        }
        if wants_tomorrow:
            params["daily"] = DAILY_FIELDS
            params["forecast_days"] = 2
        else:
            params["current_weather"] = "true"
            params["daily"] = "precipitation_sum"
            params["forecast_days"] = 1
        payload = self._fetch_json(self.forecast_url, params, subject=f"{latitude},{longitude}")
        return payload if isinstance(payload, dict) else None

    def normalize(self, payload: dict[str, Any], place: str, wants_tomorrow: bool) -> WeatherObservation | None:
        daily = payload.get("daily") if isinstance(payload.get("daily"), dict) else {}

        if wants_tomorrow:
            if not daily:
                LOGGER.warning("forecast payload missing daily block place=%s", place)
                return None
            temp_max = _as_float(_daily_value(daily, "temperature_2m_max", TOMORROW_INDEX))
            temp_min = _as_float(_daily_value(daily, "temperature_2m_min", TOMORROW_INDEX))
            if temp_max is not None and temp_min is not None:
                temperature = (temp_max + temp_min) / 2
            else:
                temperature = temp_max if temp_max is not None else temp_min
            weather_code = _as_int(_daily_value(daily, "weathercode", TOMORROW_INDEX))
            precipitation = _as_float(_daily_value(daily, "precipitation_sum", TOMORROW_INDEX))
        else:
            current = payload.get("current_weather")
            if not isinstance(current, dict):
                LOGGER.warning("forecast payload missing current_weather block place=%s", place)
                return None
            temperature = _as_float(current.get("temperature"))
            weather_code = _as_int(current.get("weathercode"))
            precipitation = _as_float(_daily_value(daily, "precipitation_sum", TODAY_INDEX))

        return WeatherObservation(
            place=place,
            temperature=temperature,
            weather_code=weather_code,
            precipitation=precipitation or 0.0,
            is_tomorrow=wants_tomorrow,
        )

    def resolve(self, place: str, wants_tomorrow: bool = False) -> WeatherObservation | None:
        try:
            coordinates = self.geocode(place)
            if coordinates is None:
                return None
            payload = self.fetch_forecast(coordinates[0], coordinates[1], wants_tomorrow)
            if payload is None:
                return None
            return self.normalize(payload, place, wants_tomorrow)
        except Exception:
            LOGGER.exception("weather lookup failed place=%s", place)
            return None
