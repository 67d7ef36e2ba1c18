"""
Lecture des archives d'export (zip) et de leur manifeste activities.csv
"""
import csv
import logging
import zipfile
from io import BytesIO
from pathlib import Path
from typing import List

from tracklab.domain.entities.workout import ManifestRow
from tracklab.domain.errors import FormatError, SourceIOError

logger = logging.getLogger(__name__)

MANIFEST_NAME = "activities.csv"

# Colonne du manifeste -> champ de ManifestRow
MANIFEST_COLUMNS = {
    "Activity ID": "activity_id",
    "Activity Date": "activity_date",
    "Activity Name": "name",
    "Activity Type": "activity_type",
    "Filename": "filename",
}

# Seules colonnes indispensables, les autres sont lues si présentes
REQUIRED_MANIFEST_COLUMNS = ("Activity Type", "Filename")


def _inside(root: Path, target: Path) -> bool:
    try:
        target.relative_to(root)
        return True
    except ValueError:
        return False


def extract_archive(archive_bytes: bytes, destination: Path) -> None:
    """Décompresse l'archive en refusant les entrées qui sortent du dossier cible"""
    root = destination.resolve()
    try:
        with zipfile.ZipFile(BytesIO(archive_bytes)) as zf:
            for member in zf.infolist():
                target = (root / member.filename).resolve()
                if not _inside(root, target):
                    raise SourceIOError(f"Entree d'archive hors du dossier cible: {member.filename}")
            zf.extractall(root)
            logger.info(f"Archive extraite: {len(zf.infolist())} entrees")
    except zipfile.BadZipFile as e:
        raise SourceIOError(f"Archive illisible: {e}") from e
    except OSError as e:
        if isinstance(e, SourceIOError):
            raise
        raise SourceIOError(f"Extraction impossible: {e}") from e


def read_manifest(root: Path) -> List[ManifestRow]:
    """Lit activities.csv à la racine de l'archive extraite"""
    manifest_path = root / MANIFEST_NAME
    if not manifest_path.is_file():
        raise FormatError(f"L'archive doit contenir {MANIFEST_NAME} a la racine")

    try:
        with open(manifest_path, newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            header = [name.strip() for name in (reader.fieldnames or [])]
            missing = [column for column in REQUIRED_MANIFEST_COLUMNS if column not in header]
            if missing:
                raise FormatError(f"Colonnes manquantes dans {MANIFEST_NAME}: {missing}")
            reader.fieldnames = header

            rows = []
            for row_number, row in enumerate(reader, start=1):
                rows.append(ManifestRow(
                    row_number=row_number,
                    **{
                        field: (row.get(column) or "").strip()
                        for column, field in MANIFEST_COLUMNS.items()
                    },
                ))
    except csv.Error as e:
        raise FormatError(f"{MANIFEST_NAME} illisible: {e}") from e
    except UnicodeDecodeError as e:
        raise FormatError(f"{MANIFEST_NAME} non UTF-8: {e}") from e
    except OSError as e:
        raise SourceIOError(f"Lecture de {MANIFEST_NAME} impossible: {e}") from e

    logger.info(f"Manifeste: {len(rows)} lignes")
    return rows


def resolve_activity_file(root: Path, filename: str) -> Path:
    """Chemin absolu du fichier référencé par une ligne, confiné à l'archive"""
    resolved_root = root.resolve()
    target = (resolved_root / filename).resolve()
    if not _inside(resolved_root, target):
        raise SourceIOError(f"Chemin hors de l'archive: {filename}")
    return target
