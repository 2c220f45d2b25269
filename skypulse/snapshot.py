from __future__ import annotations

from dataclasses import dataclass
import json
import os
from typing import Any


WEATHER_ICONS: dict[int, tuple[str, str]] = {
    0: ("☀️", "🌙"),
    1: ("🌤️", "🌙"),
    2: ("⛅", "☁️"),
    3: ("☁️", "☁️"),
    45: ("🌫️", "🌫️"),
    48: ("🌫️", "🌫️"),
    95: ("⛈️", "⛈️"),
    96: ("⛈️", "⛈️"),
    99: ("⛈️", "⛈️"),
}
for _code in (51, 53, 55, 61, 63, 65, 80, 81, 82):
    WEATHER_ICONS[_code] = ("🌧️", "🌧️")
for _code in (56, 57, 66, 67, 77, 85, 86):
    WEATHER_ICONS[_code] = ("🌨️", "🌨️")
for _code in (71, 73, 75):
    WEATHER_ICONS[_code] = ("❄️", "❄️")
FALLBACK_ICONS = ("🌤️", "🌙")


@dataclass(frozen=True)
class WeatherSnapshot:
    """Latest weather state the app shares with its home-screen widget."""

    city: str = "Loading..."
    temperature: str = "--"
    condition: str = "--"
    humidity: str = "--%"
    wind: str = "-- km/h"
    weather_code: int = 0
    is_day: bool = True

    @property
    def icon(self) -> str:
        return weather_icon(self.weather_code, self.is_day)

    def summary(self) -> str:
        return (
            f"{self.icon} {self.city}: {self.temperature} {self.condition} "
            f"(💧 {self.humidity}, 💨 {self.wind})"
        )


def weather_icon(code: int, is_day: bool) -> str:
    day, night = WEATHER_ICONS.get(code, FALLBACK_ICONS)
    return day if is_day else night


def load_snapshot(path: str) -> WeatherSnapshot:
    if not os.path.exists(path):
        return WeatherSnapshot()

    with open(path, "r", encoding="utf-8") as handle:
        raw = json.load(handle)

    if not isinstance(raw, dict):
        return WeatherSnapshot()

    defaults = WeatherSnapshot()
    return WeatherSnapshot(
        city=_string(raw.get("city"), defaults.city),
        temperature=_string(raw.get("temperature"), defaults.temperature),
        condition=_string(raw.get("condition"), defaults.condition),
        humidity=_string(raw.get("humidity"), defaults.humidity),
        wind=_string(raw.get("wind"), defaults.wind),
        weather_code=_int(raw.get("weather_code"), defaults.weather_code),
        is_day=raw["is_day"] if isinstance(raw.get("is_day"), bool) else defaults.is_day,
    )


def _string(value: Any, default: str) -> str:
    if value is None:
        return default
    return str(value)


def _int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
