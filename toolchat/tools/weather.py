"""
Weather Tool

Returns simulated weather for a location. No provider is contacted; every
value is sampled from a pseudo-random generator.
"""

import logging
import random
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

CONDITIONS = ("sunny", "cloudy", "rainy", "snowy", "windy")

_rng = random.Random()


class WeatherInput(BaseModel):
    location: str = Field(description='Location, e.g. "Helsinki" or "New York"')


def get_weather(location: str, rng: Optional[random.Random] = None) -> dict:
    """
    Sample weather for a location.

    Args:
        location: Free-form location name.
        rng: Random source, mainly for tests.

    Returns:
        Dictionary with location, temperature (C), condition, humidity (%)
        and windSpeed (km/h).
    """
    rng = rng or _rng
    return {
        "location": location,
        "temperature": rng.randint(-10, 24),
        "condition": rng.choice(CONDITIONS),
        "humidity": rng.randint(40, 99),
        "windSpeed": rng.randint(5, 24),
    }


def _handle_weather(params: WeatherInput) -> dict:
    logger.info("Fetching weather for: %s", params.location)
    return get_weather(params.location)


def _register():
    from .registry import ToolRegistry

    ToolRegistry.register(
        name="weather",
        description=(
            "Fetch weather information based on location. "
            "Use when the user asks about weather."
        ),
        input_model=WeatherInput,
        handler=_handle_weather,
    )


_register()
