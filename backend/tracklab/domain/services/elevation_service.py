"""
Estimation du dénivelé (D+/D-) et des altitudes extrêmes
"""
from tracklab.domain.entities.metrics import ElevationConfig, ElevationSummary
from tracklab.domain.services.geometry import EnrichedTrack, smooth_elevation


def estimate_elevation(track: EnrichedTrack, config: ElevationConfig) -> ElevationSummary:
    """D+/D- filtrés sur la série d'altitude, min/max bruts"""
    elevations = [p.elevation_m for p in track.points if p.elevation_m is not None]
    if not elevations:
        return ElevationSummary()

    gain, loss = smooth_elevation(track.points, config)
    return ElevationSummary(
        gain_m=gain,
        loss_m=loss,
        min_m=min(elevations),
        max_m=max(elevations),
    )
