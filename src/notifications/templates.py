"""Alert email rendering."""

from html import escape

_HIGH_COLOR = "#dc3545"
_MEDIUM_COLOR = "#ffc107"
_LOW_COLOR = "#17a2b8"

_SEVERITY_COLORS = {"High": _HIGH_COLOR, "Medium": _MEDIUM_COLOR, "Low": _LOW_COLOR}

_HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background-color: {color}; color: white; padding: 20px; text-align: center; border-radius: 5px 5px 0 0; }}
        .content {{ background-color: #f9f9f9; padding: 20px; border-radius: 0 0 5px 5px; }}
        .alert-box {{ background-color: white; border-left: 4px solid {color}; padding: 15px; margin: 20px 0; }}
        .footer {{ text-align: center; margin-top: 20px; color: #666; font-size: 12px; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h2>Weather Alert</h2>
        </div>
        <div class="content">
            <h3>{location}</h3>
            <div class="alert-box">
                <strong>Alert Type:</strong> {alert_type}<br/>
                <strong>Severity:</strong> {severity}<br/>
                <strong>Message:</strong> {message}
            </div>
            <p>Please take necessary precautions based on this weather alert.</p>
            <div class="footer">
                <p>This is an automated alert from {app_name}</p>
                <p>You can manage your alert settings in the app.</p>
            </div>
        </div>
    </div>
</body>
</html>
"""


def email_severity(alert_type: str) -> str:
    """Fallback severity for records queued without one: High for severe and thunderstorm alerts."""
    if "Severe" in alert_type or "Thunderstorm" in alert_type:
        return "High"
    return "Medium"


def _location(city: str, country: str) -> str:
    return f"{city}, {country}" if country else city


def render_subject(alert_type: str, city: str, country: str = "") -> str:
    return f"Weather Alert: {alert_type} - {_location(city, country)}"


def render_html(
    alert_type: str,
    city: str,
    country: str,
    message: str,
    app_name: str = "Weather App",
    severity: str | None = None,
) -> str:
    """HTML body with the header colored by severity (red, amber or blue).

    Every interpolated value is HTML-escaped.
    """
    severity = severity or email_severity(alert_type)
    return _HTML_TEMPLATE.format(
        color=_SEVERITY_COLORS.get(severity, _MEDIUM_COLOR),
        location=escape(_location(city, country)),
        alert_type=escape(alert_type),
        severity=escape(severity),
        message=escape(message),
        app_name=escape(app_name),
    )


def render_text(
    alert_type: str, city: str, country: str, message: str, severity: str | None = None,
) -> str:
    return (
        f"Weather Alert for {_location(city, country)}\n\n"
        f"Alert Type: {alert_type}\n"
        f"Severity: {severity or email_severity(alert_type)}\n"
        f"Message: {message}\n\n"
        "Please take necessary precautions based on this weather alert.\n"
    )


def render_push_title(alert_type: str, city: str) -> str:
    return f"{alert_type} Alert - {city}"
