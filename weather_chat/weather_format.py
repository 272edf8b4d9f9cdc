import random
from decimal import ROUND_HALF_UP, Decimal

from .schemas import WeatherIntent, WeatherObservation

WEATHER_CODE_DESCRIPTIONS = {
    0: "Despejado",
    1: "Despejado en su mayoría",
    2: "Parcialmente nublado",
    3: "Nublado",
    45: "Niebla",
    48: "Niebla con escarcha",
    51: "Llovizna ligera",
    53: "Llovizna moderada",
    55: "Llovizna intensa",
    56: "Llovizna helada ligera",
    57: "Llovizna helada intensa",
    61: "Lluvia ligera",
    63: "Lluvia moderada",
    65: "Lluvia intensa",
    66: "Lluvia helada ligera",
    67: "Lluvia helada intensa",
    71: "Nevada ligera",
    73: "Nevada moderada",
    75: "Nevada intensa",
    77: "Granizo fino",
    80: "Chubascos ligeros",
    81: "Chubascos moderados",
    82: "Chubascos violentos",
    85: "Chubascos de nieve ligeros",
    86: "Chubascos de nieve intensos",
    95: "Tormenta",
    96: "Tormenta con granizo ligero",
    99: "Tormenta con granizo intenso",
}
UNKNOWN_CONDITION = "Condiciones desconocidas"

ICON_CLEAR = "☀️"
ICON_FOG = "🌫️"
ICON_RAIN = "🌧️"
ICON_SNOW = "❄️"
ICON_STORM = "⛈️"
ICON_DEFAULT = "🌡️"

UMBRELLA_YES = "¡Sí, lleva paraguas!"
UMBRELLA_NO = "No parece que vaya a llover, no necesitarás paraguas."
UMBRELLA_ICONS = ("☔", "🌂", "🌧️")
SUN_ICONS = ("☀️", "🌞", "😎")


def weather_icon(weather_code: int | None) -> str:
    if weather_code is None:
        return ICON_DEFAULT
    if 0 <= weather_code <= 3:
        return ICON_CLEAR
    if 45 <= weather_code <= 48:
        return ICON_FOG
    if 51 <= weather_code <= 67 or 80 <= weather_code <= 82:
        return ICON_RAIN
    if 71 <= weather_code <= 77:
        return ICON_SNOW
    if 95 <= weather_code <= 99:
        return ICON_STORM
    return ICON_DEFAULT


def describe_weather_code(weather_code: int | None) -> str:
    if weather_code is None:
        return UNKNOWN_CONDITION
    return WEATHER_CODE_DESCRIPTIONS.get(weather_code, UNKNOWN_CONDITION)


def round_half_up(value: float, digits: int = 0) -> float:
    step = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(step, rounding=ROUND_HALF_UP))


def _day_label(is_tomorrow: bool) -> str:
    return "(mañana)" if is_tomorrow else "(hoy)"


def _temperature_line(temperature: float | None) -> str:
    if temperature is None:
        return "- Temperatura: no disponible"
    return f"- Temperatura: {int(round_half_up(temperature))}°C"


def format_weather_reply(
    observation: WeatherObservation,
    intent: WeatherIntent,
    rng: random.Random | None = None,
) -> str:
    chooser = rng or random.Random()
    lines = [
        f"{weather_icon(observation.weather_code)} Clima en {observation.place} {_day_label(observation.is_tomorrow)}:",
        _temperature_line(observation.temperature),
        f"- Condición: {describe_weather_code(observation.weather_code)}",
    ]

    # Amounts that round to 0.0 mm count as dry for both the rain line and the advice.
    rain = round_half_up(float(observation.precipitation or 0.0), 1)
    if rain > 0:
        lines.append(f"- Lluvia: {rain} mm")
        if intent.asks_umbrella:
            lines.append("")
            lines.append(f"{UMBRELLA_YES} {chooser.choice(UMBRELLA_ICONS)}")
    elif intent.asks_umbrella:
        lines.append("")
        lines.append(f"{UMBRELLA_NO} {chooser.choice(SUN_ICONS)}")

    return "\n".join(lines) + "\n"


def format_weather_unavailable(place: str) -> str:
    return (
        f"No pude obtener la información del tiempo para {place}. "
        "Por favor, intenta con otra ciudad o más tarde."
    )
