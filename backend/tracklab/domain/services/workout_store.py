"""
Store des séances importées (SQLModel)

Alimente paresseusement la détection de doublons et porte la promotion des
meilleurs efforts : UPDATE conditionnel (seulement si plus rapide), INSERT si
la distance n'a encore aucun record.
"""
import logging
from datetime import datetime
from typing import Dict, Iterator, List
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from tracklab.domain.entities.metrics import BestEffortCandidate
from tracklab.domain.entities.workout import ActivitySummary, WorkoutRecord
from tracklab.domain.entities.workout_entry import BestEffortEntry, WorkoutEntry, utc_now
from tracklab.domain.services.normalizers.common import to_utc

logger = logging.getLogger(__name__)

SUMMARY_BATCH_SIZE = 500


def _to_entry(record: WorkoutRecord) -> WorkoutEntry:
    metrics = record.metrics
    return WorkoutEntry(
        id=record.id,
        name=record.name,
        activity_type=record.activity_type,
        source_format=record.source_format.value,
        source_path=record.source_path,
        device_name=record.device_name,
        started_at=record.start_time,
        distance_m=record.distance_m,
        duration_s=record.duration_s,
        avg_pace_s=metrics.avg_pace_s,
        elevation_gain_m=metrics.elevation_gain_m,
        elevation_loss_m=metrics.elevation_loss_m,
        min_elevation_m=metrics.min_elevation_m,
        max_elevation_m=metrics.max_elevation_m,
        avg_heart_rate_bpm=metrics.avg_heart_rate_bpm,
        max_heart_rate_bpm=metrics.max_heart_rate_bpm,
        relative_effort=metrics.relative_effort,
        splits_data=[split.model_dump() for split in metrics.splits],
        zone_seconds=(
            list(metrics.zone_distribution.seconds_per_zone)
            if metrics.zone_distribution else None
        ),
    )


class WorkoutStore:
    """Accès aux tables workout / best_effort"""

    def __init__(self, engine: Engine):
        self.engine = engine

    def save(self, record: WorkoutRecord) -> UUID:
        """Persiste la séance puis promeut ses meilleurs efforts"""
        with Session(self.engine) as session:
            session.add(_to_entry(record))
            session.commit()

        promoted = self.promote_best_efforts(record)
        if promoted:
            logger.info(f"Seance {record.id}: nouveaux records {promoted}")
        return record.id

    def iter_summaries(self, batch_size: int = SUMMARY_BATCH_SIZE) -> Iterator[ActivitySummary]:
        """Résumés des séances stockées, lus par lots (générateur)"""
        statement = (
            select(WorkoutEntry.id, WorkoutEntry.started_at, WorkoutEntry.distance_m, WorkoutEntry.duration_s)
            .order_by(WorkoutEntry.started_at)
            .execution_options(yield_per=batch_size)
        )
        with Session(self.engine) as session:
            for workout_id, started_at, distance_m, duration_s in session.exec(statement):
                yield ActivitySummary(
                    start_time=to_utc(started_at),
                    distance_m=distance_m,
                    duration_s=duration_s,
                    workout_id=workout_id,
                )

    def get(self, workout_id: UUID):
        with Session(self.engine) as session:
            return session.get(WorkoutEntry, workout_id)

    def best_efforts(self) -> Dict[str, BestEffortEntry]:
        with Session(self.engine) as session:
            entries = session.exec(select(BestEffortEntry)).all()
            return {entry.distance_label: entry for entry in entries}

    def _try_update(self, session: Session, candidate: BestEffortCandidate, workout_id: UUID, workout_date: datetime) -> bool:
        result = session.exec(
            update(BestEffortEntry)
            .where(
                BestEffortEntry.distance_label == candidate.distance_label,
                BestEffortEntry.time_s > candidate.time_s,
            )
            .values(
                time_s=candidate.time_s,
                distance_m=candidate.distance_m,
                workout_id=workout_id,
                workout_date=workout_date,
                updated_at=utc_now(),
            )
        )
        return result.rowcount > 0

    def promote_best_efforts(self, record: WorkoutRecord) -> List[str]:
        """
        Compare-and-swap des meilleurs efforts de la séance.

        Retourne les distances dont le record a été battu ou créé.
        """
        promoted: List[str] = []
        for label, candidate in record.metrics.best_efforts.items():
            with Session(self.engine) as session:
                if self._try_update(session, candidate, record.id, record.start_time):
                    session.commit()
                    promoted.append(label)
                    continue

                if session.get(BestEffortEntry, label) is not None:
                    # Record existant plus rapide ou égal
                    continue

                session.add(BestEffortEntry(
                    distance_label=label,
                    distance_m=candidate.distance_m,
                    time_s=candidate.time_s,
                    workout_id=record.id,
                    workout_date=record.start_time,
                ))
                try:
                    session.commit()
                    promoted.append(label)
                except IntegrityError:
                    # Insertion concurrente : on retente la mise à jour conditionnelle
                    session.rollback()
                    if self._try_update(session, candidate, record.id, record.start_time):
                        session.commit()
                        promoted.append(label)
        return promoted
