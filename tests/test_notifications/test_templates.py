"""Tests for alert email and push rendering."""

from src.notifications.templates import (
    email_severity,
    render_html,
    render_push_title,
    render_subject,
    render_text,
)


class TestSeverity:

    def test_severe_and_thunderstorm_are_high(self):
        assert email_severity("SevereHeat") == "High"
        assert email_severity("SevereCold") == "High"
        assert email_severity("Thunderstorm") == "High"

    def test_others_are_medium(self):
        assert email_severity("HeavyRain") == "Medium"
        assert email_severity("LowHumidity") == "Medium"

    def test_explicit_severity_wins(self):
        html = render_html("LowHumidity", "Lima", "PE", "dry", severity="Low")
        assert "<strong>Severity:</strong> Low" in html
        assert "#17a2b8" in html
        assert "Severity: Low" in render_text("LowHumidity", "Lima", "PE", "dry", severity="Low")


class TestRendering:

    def test_subject(self):
        assert render_subject("HighWind", "Oslo", "NO") == "Weather Alert: HighWind - Oslo, NO"
        assert render_subject("HighWind", "Oslo") == "Weather Alert: HighWind - Oslo"

    def test_html_colors(self):
        assert "#dc3545" in render_html("SevereHeat", "Cairo", "EG", "hot")
        assert "#ffc107" in render_html("HeavyRain", "Leeds", "GB", "wet")

    def test_html_escapes_values(self):
        html = render_html("HeavyRain", "<b>Town</b>", "", "a & b", app_name="My App")
        assert "&lt;b&gt;Town&lt;/b&gt;" in html
        assert "a &amp; b" in html
        assert "automated alert from My App" in html

    def test_text(self):
        text = render_text("HighWind", "Oslo", "NO", "windy")
        assert text.startswith("Weather Alert for Oslo, NO")
        assert "Severity: Medium" in text
        assert "Message: windy" in text

    def test_push_title(self):
        assert render_push_title("HeavySnow", "Oslo") == "HeavySnow Alert - Oslo"
