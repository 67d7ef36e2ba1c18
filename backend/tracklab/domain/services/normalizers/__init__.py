"""
Normalizers : bytes + format déclaré -> RawActivity canonique
"""
import gzip
import zlib
from typing import Optional

from tracklab.domain.entities.track import RawActivity, SourceFormat
from tracklab.domain.errors import FormatError
from .common import ensure_track
from .csv_normalizer import normalize_csv
from .fit_normalizer import DecodedRecord, FitDecoder, FitparseDecoder, normalize_fit
from .gpx_normalizer import normalize_gpx

# Extension de fichier -> format (les plus longues d'abord)
FILE_EXTENSIONS = (
    (".fit.gz", SourceFormat.FIT_GZIP),
    (".gpx", SourceFormat.GPX),
    (".csv", SourceFormat.CSV),
    (".fit", SourceFormat.FIT),
)


def format_from_filename(filename: str) -> SourceFormat:
    """Déduit le format déclaré depuis le nom de fichier"""
    lowered = filename.lower()
    for suffix, source_format in FILE_EXTENSIONS:
        if lowered.endswith(suffix):
            return source_format
    raise FormatError(f"Type de fichier non supporte: {filename}")


def _inflate(data: bytes) -> bytes:
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as e:
        raise FormatError(f"Flux gzip corrompu: {e}") from e


def normalize(data: bytes, declared_format, decoder: Optional[FitDecoder] = None) -> RawActivity:
    """
    Convertit le contenu d'un fichier dans la représentation canonique.

    Lève FormatError si le contenu ne correspond pas au format déclaré et
    EmptyTrackError si moins de 2 points sont exploitables.
    """
    try:
        source_format = SourceFormat(declared_format)
    except ValueError as e:
        raise FormatError(f"Format declare inconnu: {declared_format!r}") from e

    if source_format == SourceFormat.GPX:
        return normalize_gpx(data)
    if source_format == SourceFormat.CSV:
        return normalize_csv(data)
    if source_format == SourceFormat.FIT:
        return normalize_fit(data, decoder)

    activity = normalize_fit(_inflate(data), decoder)
    return activity.model_copy(update={"source_format": SourceFormat.FIT_GZIP})


__all__ = [
    "normalize", "format_from_filename", "ensure_track",
    "normalize_gpx", "normalize_csv", "normalize_fit",
    "DecodedRecord", "FitDecoder", "FitparseDecoder",
]
