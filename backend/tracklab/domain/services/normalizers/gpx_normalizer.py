"""
Normalizer GPX (gpxpy)
Les capteurs (FC, cadence, puissance, température) sont lus dans les
extensions Garmin TrackPointExtension, par nom local de balise.
"""
import logging
from typing import Dict, List, Optional

import gpxpy
import gpxpy.gpx

from tracklab.domain.entities.track import RawActivity, SourceFormat, TrackPoint
from tracklab.domain.errors import FormatError
from tracklab.domain.services.normalizers.common import (
    ensure_track,
    optional_float,
    optional_int,
    to_utc,
)

logger = logging.getLogger(__name__)

# Nom local de balise -> champ du TrackPoint
EXTENSION_FIELDS = {
    "hr": "heart_rate_bpm",
    "cad": "cadence_rpm",
    "power": "power_watts",
    "atemp": "temperature_c",
}


def _local_name(tag) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1].rsplit(":", 1)[-1].lower()


def _read_extensions(point: gpxpy.gpx.GPXTrackPoint) -> Dict[str, Optional[float]]:
    values: Dict[str, Optional[float]] = {}
    for extension in point.extensions or []:
        for element in extension.iter():
            field = EXTENSION_FIELDS.get(_local_name(element.tag))
            if field is None or element.text is None:
                continue
            text = element.text.strip()
            if not text:
                continue
            try:
                values[field] = float(text)
            except ValueError:
                raise FormatError(f"Valeur d'extension GPX invalide <{element.tag}>: {text!r}")
    return values


def normalize_gpx(data: bytes) -> RawActivity:
    """Parse un fichier GPX en RawActivity"""
    try:
        content = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise FormatError(f"GPX non UTF-8: {e}") from e

    try:
        gpx = gpxpy.parse(content)
    except gpxpy.gpx.GPXException as e:
        raise FormatError(f"GPX invalide: {e}") from e

    points: List[TrackPoint] = []
    name = gpx.name
    activity_type = None

    for track in gpx.tracks:
        name = name or track.name
        activity_type = activity_type or track.type
        for segment in track.segments:
            for point in segment.points:
                if point.time is None:
                    raise FormatError(
                        f"Point GPX sans horodatage ({point.latitude}, {point.longitude})"
                    )
                sensors = _read_extensions(point)
                points.append(TrackPoint(
                    timestamp=to_utc(point.time),
                    latitude=point.latitude,
                    longitude=point.longitude,
                    elevation_m=point.elevation,
                    heart_rate_bpm=optional_int(sensors.get("heart_rate_bpm")),
                    cadence_rpm=optional_int(sensors.get("cadence_rpm")),
                    power_watts=optional_int(sensors.get("power_watts")),
                    temperature_c=optional_float(sensors.get("temperature_c")),
                ))

    logger.debug(f"GPX: {len(points)} points, creator={gpx.creator}")

    return RawActivity(
        points=tuple(ensure_track(points)),
        source_format=SourceFormat.GPX,
        name=name,
        activity_type=activity_type,
        device_name=gpx.creator,
    )
