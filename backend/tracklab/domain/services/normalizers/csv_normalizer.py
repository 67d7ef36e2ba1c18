"""
Normalizer des exports CSV tabulaires (une ligne par point)

Colonnes obligatoires : timestamp, latitude, longitude
Colonnes optionnelles : elevation_m, heart_rate, cadence, power, temperature,
distance_km (cumulée, convertie une seule fois en mètres)
"""
import csv
import io
import logging
from datetime import datetime
from typing import Dict, List, Optional

from tracklab.domain.entities.track import RawActivity, SourceFormat, TrackPoint
from tracklab.domain.errors import FormatError
from tracklab.domain.services.normalizers.common import (
    ensure_track,
    optional_float,
    optional_int,
    to_utc,
)

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("timestamp", "latitude", "longitude")
OPTIONAL_COLUMNS = ("elevation_m", "heart_rate", "cadence", "power", "temperature", "distance_km")


def parse_timestamp(value: str) -> datetime:
    """ISO 8601, suffixe Z accepté, naïf = UTC"""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return to_utc(datetime.fromisoformat(text))


def _required(row: Dict[str, str], column: str, line: int) -> str:
    value = (row.get(column) or "").strip()
    if not value:
        raise FormatError(f"Ligne {line}: colonne obligatoire '{column}' vide")
    return value


def _parse_row(row: Dict[str, str], line: int) -> TrackPoint:
    try:
        return TrackPoint(
            timestamp=parse_timestamp(_required(row, "timestamp", line)),
            latitude=float(_required(row, "latitude", line)),
            longitude=float(_required(row, "longitude", line)),
            elevation_m=optional_float((row.get("elevation_m") or "").strip()),
            heart_rate_bpm=optional_int((row.get("heart_rate") or "").strip()),
            cadence_rpm=optional_int((row.get("cadence") or "").strip()),
            power_watts=optional_int((row.get("power") or "").strip()),
            temperature_c=optional_float((row.get("temperature") or "").strip()),
        )
    except FormatError:
        raise
    except ValueError as e:
        raise FormatError(f"Ligne {line}: valeur invalide ({e})") from e


def normalize_csv(data: bytes) -> RawActivity:
    """Parse un export CSV en RawActivity"""
    try:
        content = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise FormatError(f"CSV non UTF-8: {e}") from e

    reader = csv.DictReader(io.StringIO(content))
    header = [name.strip() for name in (reader.fieldnames or [])]
    missing = [column for column in REQUIRED_COLUMNS if column not in header]
    if missing:
        raise FormatError(f"Colonnes CSV manquantes: {missing} (entete: {header})")
    reader.fieldnames = header

    points: List[TrackPoint] = []
    last_distance_km: Optional[float] = None

    try:
        for line, row in enumerate(reader, start=2):
            if not any((value or "").strip() for value in row.values() if isinstance(value, str)):
                continue
            points.append(_parse_row(row, line))
            distance = (row.get("distance_km") or "").strip()
            if distance:
                try:
                    last_distance_km = float(distance)
                except ValueError as e:
                    raise FormatError(f"Ligne {line}: distance_km invalide {distance!r}") from e
    except csv.Error as e:
        raise FormatError(f"CSV illisible: {e}") from e

    logger.debug(f"CSV: {len(points)} points")

    return RawActivity(
        points=tuple(ensure_track(points)),
        source_format=SourceFormat.CSV,
        reported_distance_m=last_distance_km * 1000.0 if last_distance_km is not None else None,
    )
