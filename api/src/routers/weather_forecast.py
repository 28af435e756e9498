"""Sample weather forecast endpoint."""

from typing import List

from fastapi import APIRouter

from api.src.models.weather import WeatherForecast, generate_forecasts

router = APIRouter(prefix="/WeatherForecast", tags=["WeatherForecast"])


@router.get("", response_model=List[WeatherForecast])
async def get_weather_forecast() -> List[WeatherForecast]:
    """Five random forecasts starting tomorrow."""
    return generate_forecasts()
