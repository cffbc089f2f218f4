import logging

from sqlalchemy.orm import Session

from db.database import SessionLocal
from db.models import Habit, Symptom

logger = logging.getLogger(__name__)

DEFAULT_SYMPTOMS = [
    {"name": "Headache", "category": "pain"},
    {"name": "Fatigue", "category": "general"},
    {"name": "Joint Pain", "category": "pain"},
    {"name": "Muscle Pain", "category": "pain"},
    {"name": "Nausea", "category": "digestive"},
    {"name": "Brain Fog", "category": "neurological"},
    {"name": "Dizziness", "category": "neurological"},
    {"name": "Insomnia", "category": "sleep"},
    {"name": "Anxiety", "category": "mental"},
    {"name": "Stomach Pain", "category": "digestive"},
    {"name": "Back Pain", "category": "pain"},
]

DEFAULT_HABITS = [
    {"name": "Sleep Duration", "tracking_type": "duration", "unit": "hours"},
    {"name": "Water Intake", "tracking_type": "numeric", "unit": "glasses"},
    {"name": "Exercise", "tracking_type": "boolean", "unit": None},
    {"name": "Alcohol", "tracking_type": "boolean", "unit": None},
    {"name": "Caffeine", "tracking_type": "numeric", "unit": "cups"},
]


def seed_system_defaults(db: Session) -> dict[str, int]:
    """Insert any missing system-default symptoms and habits. Safe to run repeatedly."""
    created = {"symptoms": 0, "habits": 0}

    for item in DEFAULT_SYMPTOMS:
        existing = (
            db.query(Symptom)
            .filter(Symptom.name == item["name"], Symptom.user_id.is_(None))
            .first()
        )
        if not existing:
            db.add(Symptom(user_id=None, name=item["name"], category=item["category"], is_active=True))
            created["symptoms"] += 1

    for item in DEFAULT_HABITS:
        existing = (
            db.query(Habit)
            .filter(Habit.name == item["name"], Habit.user_id.is_(None))
            .first()
        )
        if not existing:
            db.add(
                Habit(
                    user_id=None,
                    name=item["name"],
                    tracking_type=item["tracking_type"],
                    unit=item["unit"],
                    is_active=True,
                )
            )
            created["habits"] += 1

    db.commit()
    return created


def ensure_system_defaults() -> None:
    db: Session = SessionLocal()
    try:
        created = seed_system_defaults(db)
        if created["symptoms"] or created["habits"]:
            logger.info(
                "Seeded system defaults: %d symptoms, %d habits",
                created["symptoms"],
                created["habits"],
            )
    finally:
        db.close()
