"""
Initialisation des entités du domaine
"""

from .track import SourceFormat, TrackPoint, RawActivity
from .zones import ZoneMethod, HeartRateZone, ZoneConfig
from .metrics import (
    STANDARD_BEST_EFFORT_DISTANCES,
    Split,
    BestEffortCandidate,
    ElevationSummary,
    ZoneDistribution,
    DerivedMetrics,
    ElevationConfig,
)
from .pipeline_config import DuplicateTolerance, MetricsConfig
from .workout import ActivitySummary, WorkoutRecord, ManifestRow, ImportStatus, ImportOutcome
from .workout_entry import WorkoutEntry, BestEffortEntry

__all__ = [
    "SourceFormat", "TrackPoint", "RawActivity",
    "ZoneMethod", "HeartRateZone", "ZoneConfig",
    "STANDARD_BEST_EFFORT_DISTANCES", "Split", "BestEffortCandidate",
    "ElevationSummary", "ZoneDistribution", "DerivedMetrics", "ElevationConfig",
    "DuplicateTolerance", "MetricsConfig",
    "ActivitySummary", "WorkoutRecord", "ManifestRow", "ImportStatus", "ImportOutcome",
    "WorkoutEntry", "BestEffortEntry",
]
