"""Tests for TrackedCity and the city key helper."""

import pytest

from src.cities.schemas import VALID_SCOPES, TrackedCity, make_city_key


class TestMakeCityKey:

    def test_case_and_whitespace_insensitive(self):
        assert make_city_key(" Paris ", "fr") == make_city_key("PARIS", "FR")

    def test_country_is_part_of_key(self):
        assert make_city_key("Paris", "FR") != make_city_key("Paris", "US")

    def test_missing_country(self):
        assert make_city_key("Paris") == "paris|"
        assert make_city_key("Paris", None) == "paris|"


class TestTrackedCity:
    """Test TrackedCity validation and helpers."""

    def test_negative_check_count_rejected(self):
        with pytest.raises(ValueError, match="check_count"):
            TrackedCity(city="Paris", check_count=-1)

    def test_display_name(self):
        assert TrackedCity(city="Paris", country="FR").display_name == "Paris, FR"
        assert TrackedCity(city="Paris").display_name == "Paris"

    def test_matches_ignores_case(self):
        city = TrackedCity(city="Tokyo", country="JP")
        assert city.matches("tokyo")
        assert city.matches("TOKYO", "jp")
        assert not city.matches("Tokyo", "CN")
        assert not city.matches("Kyoto")

    def test_to_dict(self):
        d = TrackedCity(city="Oslo", country="NO", user_id="u", is_favorite=True).to_dict()
        assert d["city"] == "Oslo"
        assert d["is_favorite"] is True
        assert d["last_event_id"] is None
        assert "T" in d["added_at"]

    def test_scopes(self):
        assert VALID_SCOPES == {"favorites", "all"}
