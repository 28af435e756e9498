"""Data models for the FastAPI service.

This package contains the SQLAlchemy table definitions used by migrations
and the Pydantic models used for request/response validation.
"""

from api.src.models.todo import Base, TodoItem, TodoItemDB
from api.src.models.weather import WeatherForecast, generate_forecasts

__all__ = [
    "Base",
    "TodoItem",
    "TodoItemDB",
    "WeatherForecast",
    "generate_forecasts",
]
