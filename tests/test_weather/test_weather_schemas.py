"""Tests for weather snapshot and forecast parsing."""

from datetime import datetime, timezone

from src.weather.schemas import ForecastEntry, WeatherSnapshot


class TestWeatherSnapshot:

    def test_camel_case_keys(self):
        weather = WeatherSnapshot.from_dict({
            "city": "Oslo",
            "country": "NO",
            "temperature": "-3.5",
            "humidity": 88,
            "windSpeed": 12,
            "mainCondition": "Snow",
            "timestamp": "2026-01-10T06:00:00Z",
        })
        assert weather.temperature == -3.5
        assert weather.wind_speed == 12.0
        assert weather.condition == "Snow"
        assert weather.observed_at == datetime(2026, 1, 10, 6, 0, tzinfo=timezone.utc)

    def test_snake_case_keys_and_missing_values(self):
        weather = WeatherSnapshot.from_dict({
            "city": "Oslo",
            "wind_speed": 3,
            "condition": "Fog",
            "country": None,
        })
        assert weather.country == ""
        assert weather.wind_speed == 3.0
        assert weather.condition == "Fog"
        assert weather.temperature == 0.0
        assert weather.observed_at.tzinfo is not None


class TestForecastEntry:

    def test_thunderstorm_detection(self):
        entry = ForecastEntry(
            forecast_at=datetime(2026, 7, 1, tzinfo=timezone.utc),
            condition="thunderstorm with heavy rain",
        )
        assert entry.is_thunderstorm
        assert not ForecastEntry(
            forecast_at=entry.forecast_at, condition="Rain",
        ).is_thunderstorm

    def test_naive_timestamp_is_utc(self):
        entry = ForecastEntry.from_dict({
            "forecast_at": "2026-07-01T09:00:00",
            "condition": "Clear",
        })
        assert entry.forecast_at == datetime(2026, 7, 1, 9, 0, tzinfo=timezone.utc)

    def test_epoch_timestamp(self):
        entry = ForecastEntry.from_dict({"dateTime": 0, "mainCondition": "Clear"})
        assert entry.forecast_at == datetime(1970, 1, 1, tzinfo=timezone.utc)
