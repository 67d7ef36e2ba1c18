"""
Helpers partagés par les normalizers : conversion UTC, lecture des champs
optionnels, validation finale de la trace.
"""
from datetime import datetime, timezone
from typing import List, Optional

from tracklab.domain.entities.track import TrackPoint
from tracklab.domain.errors import EmptyTrackError, FormatError

MIN_TRACK_POINTS = 2


def to_utc(value: datetime) -> datetime:
    """Les horodatages naïfs sont considérés comme déjà en UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def optional_int(value) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(round(float(value)))


def optional_float(value) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def ensure_track(points: List[TrackPoint]) -> List[TrackPoint]:
    """Rejette les traces trop courtes ou dont le temps recule"""
    if len(points) < MIN_TRACK_POINTS:
        raise EmptyTrackError(
            f"Trace inexploitable: {len(points)} point(s), minimum {MIN_TRACK_POINTS}"
        )
    for i in range(1, len(points)):
        if points[i].timestamp < points[i - 1].timestamp:
            raise FormatError(
                f"Horodatages decroissants au point {i}: "
                f"{points[i].timestamp.isoformat()} < {points[i - 1].timestamp.isoformat()}"
            )
    return points
