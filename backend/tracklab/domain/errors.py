"""
Erreurs du pipeline d'ingestion
Les erreurs par fichier sont capturees dans le rapport d'import,
les erreurs de lot (archive illisible, manifeste absent) remontent a l'appelant.
"""


class IngestionError(Exception):
    """Base de toutes les erreurs du pipeline"""


class FormatError(IngestionError, ValueError):
    """Le contenu ne correspond pas au format declare (XML invalide, colonnes CSV, ...)"""


class DecoderError(FormatError):
    """Le decodeur FIT rejette le flux binaire"""


class EmptyTrackError(IngestionError, ValueError):
    """Moins de 2 points exploitables dans la trace"""


class InvalidRangeError(IngestionError, ValueError):
    """Bornes de recadrage incoherentes ou ne couvrant aucun point"""


class SourceIOError(IngestionError, OSError):
    """Lecture d'archive ou de fichier impossible (la cause est chainee)"""


class DuplicateActivityError(IngestionError):
    """L'activite existe deja dans le store"""

    def __init__(self, message: str, existing=None):
        super().__init__(message)
        self.existing = existing


class ImportTimeoutError(IngestionError, TimeoutError):
    """Un fichier du lot a depasse le temps de traitement autorise"""
