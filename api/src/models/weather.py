"""Weather forecast stub model and sample generator."""

import datetime
import random
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, computed_field
from pydantic.alias_generators import to_camel

SUMMARIES = [
    "Freezing", "Bracing", "Chilly", "Cool", "Mild",
    "Warm", "Balmy", "Hot", "Sweltering", "Scorching",
]

FORECAST_DAYS = 5


class WeatherForecast(BaseModel):
    """One day of the sample forecast. Never persisted."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    date: datetime.date
    temperature_c: int
    summary: Optional[str] = None

    @computed_field(alias="temperatureF")
    @property
    def temperature_f(self) -> int:
        return 32 + int(self.temperature_c / 0.5556)


def generate_forecasts(
    days: int = FORECAST_DAYS,
    rng: Optional[random.Random] = None,
    today: Optional[datetime.date] = None,
) -> List[WeatherForecast]:
    """Random forecasts for the ``days`` days following ``today``."""
    rng = rng or random.Random()
    today = today or datetime.date.today()
    return [
        WeatherForecast(
            date=today + datetime.timedelta(days=offset),
            temperature_c=rng.randrange(-20, 55),
            summary=rng.choice(SUMMARIES),
        )
        for offset in range(1, days + 1)
    ]
