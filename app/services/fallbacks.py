"""
Built-in records served when the upstream cannot be reached.

Returned as fresh dicts so callers can augment them freely.
"""
from datetime import date
from typing import Any

_EARTHRISE_URL = "https://apod.nasa.gov/apod/image/1812/earthrise_apollo8_4133.jpg"

_POSITIONS = {
    "centroid_coordinates": {"lat": 0.0, "lon": 0.0},
    "dscovr_j2000_position": {"x": -1394708.63, "y": 576971.88, "z": 246324.69},
    "lunar_j2000_position": {"x": 25949.44, "y": -351738.88, "z": -152481.00},
    "sun_j2000_position": {"x": -37296566.44, "y": -139990462.88, "z": -60673090.00},
    "attitude_quaternions": {"q0": -0.374760, "q1": 0.024730, "q2": 0.015829, "q3": 0.926654},
}


def day_picture_fallback(today: date) -> dict[str, Any]:
    return {
        "title": "Earthrise",
        "explanation": (
            "This iconic image shows Earth rising over the lunar horizon, captured during "
            "the Apollo 8 mission. When API services are temporarily unavailable, we show "
            "this timeless view of our home planet."
        ),
        "url": _EARTHRISE_URL,
        "hdurl": _EARTHRISE_URL,
        "media_type": "image",
        "date": today.isoformat(),
    }


def earth_image_fallback() -> list[dict[str, Any]]:
    record: dict[str, Any] = {
        "identifier": "20240810_000000",
        "caption": "This image was taken by the EPIC camera aboard the NOAA DSCOVR satellite",
        "image": "epic_1b_20240810000000",
        "version": "03",
        "date": "2024-08-10 00:00:00",
    }
    record.update({k: dict(v) for k, v in _POSITIONS.items()})
    record["coords"] = {k: dict(v) for k, v in _POSITIONS.items()}
    return [record]
