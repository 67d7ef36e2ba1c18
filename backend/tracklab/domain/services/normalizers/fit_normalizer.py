"""
Normalizer FIT (binaire constructeur)

Le décodage du format binaire est délégué à un FitDecoder ; ce module ne
consomme que la suite de messages décodés (file_id, device_info, session, record).
"""
import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Dict, List, Optional, Protocol, Sequence

from tracklab.domain.entities.track import RawActivity, SourceFormat, TrackPoint
from tracklab.domain.errors import DecoderError, FormatError
from tracklab.domain.services.normalizers.common import (
    ensure_track,
    optional_float,
    optional_int,
    to_utc,
)

logger = logging.getLogger(__name__)

# Conversion semicircles -> degres (FIT stocke lat/lng en semicircles)
SEMICIRCLE_TO_DEG = 180.0 / (2 ** 31)

MESSAGE_NAMES = ("file_id", "device_info", "session", "record")


@dataclass(frozen=True)
class DecodedRecord:
    """Message FIT décodé : nom + valeurs par champ"""
    name: str
    values: Dict[str, Any] = field(default_factory=dict)


class FitDecoder(Protocol):
    def decode(self, data: bytes) -> Sequence[DecodedRecord]:
        ...


class FitparseDecoder:
    """Décodeur par défaut basé sur fitparse"""

    def decode(self, data: bytes) -> List[DecodedRecord]:
        import fitparse

        try:
            fitfile = fitparse.FitFile(BytesIO(data))
            return [
                DecodedRecord(name=message.name, values=dict(message.get_values()))
                for message in fitfile.get_messages(list(MESSAGE_NAMES))
            ]
        except fitparse.FitParseError as e:
            raise DecoderError(f"Flux FIT rejete: {e}") from e


def _device_name(records: Sequence[DecodedRecord]) -> Optional[str]:
    """product_name, sinon fabricant + produit (device_info puis file_id)"""
    candidates = [r for r in records if r.name == "device_info"]
    candidates += [r for r in records if r.name == "file_id"]
    for record in candidates:
        values = record.values
        product_name = values.get("product_name")
        if product_name:
            return str(product_name).strip()
        manufacturer = values.get("manufacturer")
        product = values.get("garmin_product") or values.get("product")
        if manufacturer and product:
            return f"{manufacturer} {product}"
    return None


def _record_to_point(values: Dict[str, Any], index: int) -> Optional[TrackPoint]:
    lat_raw = values.get("position_lat")
    lng_raw = values.get("position_long")
    if lat_raw is None or lng_raw is None:
        # Indoor / pas de fix GPS
        return None

    timestamp = values.get("timestamp")
    if timestamp is None:
        raise FormatError(f"Record FIT {index} sans horodatage")

    altitude = values.get("enhanced_altitude")
    if altitude is None:
        altitude = values.get("altitude")

    return TrackPoint(
        timestamp=to_utc(timestamp),
        latitude=lat_raw * SEMICIRCLE_TO_DEG,
        longitude=lng_raw * SEMICIRCLE_TO_DEG,
        elevation_m=optional_float(altitude),
        heart_rate_bpm=optional_int(values.get("heart_rate")),
        cadence_rpm=optional_int(values.get("cadence")),
        power_watts=optional_int(values.get("power")),
        temperature_c=optional_float(values.get("temperature")),
    )


def normalize_fit(data: bytes, decoder: Optional[FitDecoder] = None) -> RawActivity:
    """Construit une RawActivity à partir des messages FIT décodés"""
    decoder = decoder or FitparseDecoder()
    records = decoder.decode(data)

    points: List[TrackPoint] = []
    skipped = 0
    for index, record in enumerate(r for r in records if r.name == "record"):
        point = _record_to_point(record.values, index)
        if point is None:
            skipped += 1
            continue
        points.append(point)

    session = next((r.values for r in records if r.name == "session"), {})

    if skipped:
        logger.debug(f"FIT: {skipped} records sans position ignores")

    return RawActivity(
        points=tuple(ensure_track(points)),
        source_format=SourceFormat.FIT,
        activity_type=str(session["sport"]) if session.get("sport") else None,
        device_name=_device_name(records),
        reported_distance_m=optional_float(session.get("total_distance")),
        reported_duration_s=optional_float(session.get("total_elapsed_time")),
    )
