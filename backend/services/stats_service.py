"""
Per-user statistics built fresh on every call.

Each figure comes from its own read query on its own session; the queries
run concurrently and are combined in memory. They do not share a snapshot,
so a log written mid-computation may show up in one figure and not another.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from config import settings
from db.models import HabitLog, MedicationLog, MoodLog, Symptom, SymptomLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TopSymptom:
    symptom_id: str
    symptom_name: str
    count: int


@dataclass
class UserStats:
    average_mood_score: float | None
    top_symptoms: list[TopSymptom]
    current_streak: int
    total_logs: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "averageMoodScore": self.average_mood_score,
            "topSymptoms": [
                {"symptomId": s.symptom_id, "symptomName": s.symptom_name, "count": s.count}
                for s in self.top_symptoms
            ],
            "currentStreak": self.current_streak,
            "totalLogs": dict(self.total_logs),
        }


def utc_today() -> date:
    return datetime.utcnow().date()


def window_start(today: date, days: int) -> datetime:
    """Midnight of ``today - days``; the inclusive lower bound of a rolling window."""
    return datetime.combine(today - timedelta(days=days), time.min)


# --- Pure aggregation ---

def average_mood(scores: Iterable[int]) -> float | None:
    values = list(scores)
    if not values:
        return None
    mean = Decimal(sum(values)) / Decimal(len(values))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def rank_top_symptoms(rows: Iterable[tuple[str, str]], limit: int = 5) -> list[TopSymptom]:
    """
    Count ``(symptom_id, symptom_name)`` rows and keep the ``limit`` most frequent.

    Rows must arrive in first-occurrence order; equal counts keep that order.
    """
    counts: dict[str, list] = {}
    for symptom_id, name in rows:
        entry = counts.get(symptom_id)
        if entry:
            entry[1] += 1
        else:
            counts[symptom_id] = [name, 1]
    ranked = sorted(counts.items(), key=lambda item: -item[1][1])
    return [
        TopSymptom(symptom_id=symptom_id, symptom_name=name, count=count)
        for symptom_id, (name, count) in ranked[: max(limit, 0)]
    ]


def current_streak(active_days: set[date], today: date, max_days: int = 366) -> int:
    """
    Consecutive active days ending today.

    A day without activity yet does not break the streak: when today is
    empty, counting starts from yesterday instead.
    """
    day = today
    if day not in active_days:
        day = today - timedelta(days=1)
    streak = 0
    while day in active_days and streak < max_days:
        streak += 1
        day -= timedelta(days=1)
    return streak


# --- Queries (one session each) ---

def _mood_scores_since(db: Session, user_id: str, since: datetime) -> list[int]:
    rows = (
        db.query(MoodLog.mood_score)
        .filter(MoodLog.user_id == user_id, MoodLog.logged_at >= since)
        .all()
    )
    return [row[0] for row in rows]


def _symptom_occurrences_since(db: Session, user_id: str, since: datetime) -> list[tuple[str, str]]:
    rows = (
        db.query(SymptomLog.symptom_id, Symptom.name)
        .join(Symptom, Symptom.id == SymptomLog.symptom_id)
        .filter(SymptomLog.user_id == user_id, SymptomLog.logged_at >= since)
        .order_by(SymptomLog.logged_at.asc(), SymptomLog.created_at.asc(), SymptomLog.id.asc())
        .all()
    )
    return [(row[0], row[1]) for row in rows]


def _count_logs(db: Session, model, user_id: str) -> int:
    return int(db.query(func.count(model.id)).filter(model.user_id == user_id).scalar() or 0)


def _active_days(db: Session, model, time_column, user_id: str, since: datetime, until: datetime) -> set[date]:
    rows = (
        db.query(time_column)
        .filter(model.user_id == user_id, time_column >= since, time_column <= until)
        .all()
    )
    return {row[0].date() for row in rows if row[0] is not None}


# Medication logs count toward streaks by creation time; their taken_at is optional.
_ACTIVITY_SOURCES = (
    (SymptomLog, SymptomLog.logged_at),
    (MoodLog, MoodLog.logged_at),
    (MedicationLog, MedicationLog.created_at),
    (HabitLog, HabitLog.logged_at),
)

_TOTAL_SOURCES = (
    ("symptoms", SymptomLog),
    ("moods", MoodLog),
    ("medications", MedicationLog),
    ("habits", HabitLog),
)


def _with_session(session_factory: Callable[[], Session], fn: Callable[..., Any], *args) -> Any:
    db = session_factory()
    try:
        return fn(db, *args)
    finally:
        db.close()


def compute_user_stats(
    session_factory: Callable[[], Session],
    user_id: str,
    today: date | None = None,
) -> UserStats:
    today = today or utc_today()
    mood_since = window_start(today, settings.STATS_MOOD_WINDOW_DAYS)
    streak_since = window_start(today, settings.STATS_STREAK_LOOKBACK_DAYS)
    streak_until = datetime.combine(today, time.max)

    with ThreadPoolExecutor(max_workers=max(int(settings.STATS_WORKERS), 1)) as pool:
        mood_future = pool.submit(_with_session, session_factory, _mood_scores_since, user_id, mood_since)
        symptom_future = pool.submit(
            _with_session, session_factory, _symptom_occurrences_since, user_id, mood_since
        )
        total_futures = {
            key: pool.submit(_with_session, session_factory, _count_logs, model, user_id)
            for key, model in _TOTAL_SOURCES
        }
        day_futures = [
            pool.submit(_with_session, session_factory, _active_days, model, column, user_id, streak_since, streak_until)
            for model, column in _ACTIVITY_SOURCES
        ]

        mood_scores = mood_future.result()
        symptom_rows = symptom_future.result()
        totals = {key: future.result() for key, future in total_futures.items()}
        active_days: set[date] = set()
        for future in day_futures:
            active_days |= future.result()

    stats = UserStats(
        average_mood_score=average_mood(mood_scores),
        top_symptoms=rank_top_symptoms(symptom_rows, settings.STATS_TOP_SYMPTOMS_LIMIT),
        current_streak=current_streak(active_days, today, settings.STATS_STREAK_MAX_DAYS),
        total_logs=totals,
    )
    logger.debug("Computed stats for user %s: streak=%d", user_id, stats.current_streak)
    return stats
