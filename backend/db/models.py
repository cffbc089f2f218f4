import uuid
from datetime import datetime

from sqlalchemy import (
    Column, Integer, Text, Float, Boolean, ForeignKey, Index,
    DateTime, inspect,
)
from sqlalchemy.orm import relationship, validates

from db.database import Base
from services.ownership import Owner, UserOwner, owner_of


def _new_id() -> str:
    return str(uuid.uuid4())


def _guard_owner_transition(row, value):
    """Reject moving a persisted row between system default and owned, or between users."""
    state = inspect(row)
    if state.has_identity:
        # reload if expired after a commit
        current = row.__dict__["user_id"] if "user_id" in row.__dict__ else row.user_id
        if current != value:
            raise ValueError("Ownership of an existing row cannot change")
    return value


class User(Base):
    __tablename__ = "users"

    id = Column(Text, primary_key=True, default=_new_id)
    email = Column(Text, unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    display_name = Column(Text)
    timezone = Column(Text, nullable=False, default="UTC")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    symptoms = relationship("Symptom", back_populates="user", cascade="all, delete-orphan")
    habits = relationship("Habit", back_populates="user", cascade="all, delete-orphan")
    medications = relationship("Medication", back_populates="user", cascade="all, delete-orphan")
    symptom_logs = relationship("SymptomLog", back_populates="user", cascade="all, delete-orphan")
    mood_logs = relationship("MoodLog", back_populates="user", cascade="all, delete-orphan")
    medication_logs = relationship("MedicationLog", back_populates="user", cascade="all, delete-orphan")
    habit_logs = relationship("HabitLog", back_populates="user", cascade="all, delete-orphan")
    reset_tokens = relationship("PasswordResetToken", back_populates="user", cascade="all, delete-orphan")


class Symptom(Base):
    __tablename__ = "symptoms"

    id = Column(Text, primary_key=True, default=_new_id)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)  # null = system default
    name = Column(Text, nullable=False)
    category = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)

    user = relationship("User", back_populates="symptoms")
    logs = relationship("SymptomLog", back_populates="symptom", cascade="all, delete")

    @validates("user_id")
    def _validate_user_id(self, key, value):
        return _guard_owner_transition(self, value)

    @property
    def owner(self) -> Owner:
        return owner_of(self.user_id)


class Habit(Base):
    __tablename__ = "habits"

    id = Column(Text, primary_key=True, default=_new_id)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)  # null = system default
    name = Column(Text, nullable=False)
    tracking_type = Column(Text, nullable=False)  # boolean | numeric | duration
    unit = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)

    user = relationship("User", back_populates="habits")
    logs = relationship("HabitLog", back_populates="habit", cascade="all, delete")

    @validates("user_id")
    def _validate_user_id(self, key, value):
        return _guard_owner_transition(self, value)

    @property
    def owner(self) -> Owner:
        return owner_of(self.user_id)


class Medication(Base):
    __tablename__ = "medications"

    id = Column(Text, primary_key=True, default=_new_id)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(Text, nullable=False)
    dosage = Column(Text)
    frequency = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    user = relationship("User", back_populates="medications")
    logs = relationship("MedicationLog", back_populates="medication", cascade="all, delete")

    @validates("user_id")
    def _validate_user_id(self, key, value):
        return _guard_owner_transition(self, value)

    @property
    def owner(self) -> Owner:
        return UserOwner(self.user_id)


class SymptomLog(Base):
    __tablename__ = "symptom_logs"

    id = Column(Text, primary_key=True, default=_new_id)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    symptom_id = Column(Text, ForeignKey("symptoms.id", ondelete="CASCADE"), nullable=False)
    severity = Column(Integer, nullable=False)  # 1-10
    notes = Column(Text)
    logged_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    user = relationship("User", back_populates="symptom_logs")
    symptom = relationship("Symptom", back_populates="logs")

    @property
    def owner(self) -> Owner:
        return UserOwner(self.user_id)


class MoodLog(Base):
    __tablename__ = "mood_logs"

    id = Column(Text, primary_key=True, default=_new_id)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    mood_score = Column(Integer, nullable=False)  # 1-5
    energy_level = Column(Integer)  # 1-5
    stress_level = Column(Integer)  # 1-5
    notes = Column(Text)
    logged_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    user = relationship("User", back_populates="mood_logs")

    @property
    def owner(self) -> Owner:
        return UserOwner(self.user_id)


class MedicationLog(Base):
    __tablename__ = "medication_logs"

    id = Column(Text, primary_key=True, default=_new_id)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    medication_id = Column(Text, ForeignKey("medications.id", ondelete="CASCADE"), nullable=False)
    taken = Column(Boolean, nullable=False)
    taken_at = Column(DateTime)
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    user = relationship("User", back_populates="medication_logs")
    medication = relationship("Medication", back_populates="logs")

    @property
    def owner(self) -> Owner:
        return UserOwner(self.user_id)


class HabitLog(Base):
    __tablename__ = "habit_logs"

    id = Column(Text, primary_key=True, default=_new_id)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    habit_id = Column(Text, ForeignKey("habits.id", ondelete="CASCADE"), nullable=False)
    value_boolean = Column(Boolean)
    value_numeric = Column(Float)
    value_duration = Column(Integer)  # minutes
    notes = Column(Text)
    logged_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    user = relationship("User", back_populates="habit_logs")
    habit = relationship("Habit", back_populates="logs")

    @property
    def owner(self) -> Owner:
        return UserOwner(self.user_id)


class PasswordResetToken(Base):
    __tablename__ = "password_reset_tokens"

    id = Column(Text, primary_key=True, default=_new_id)
    # unique: at most one live reset token per user
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    token_hash = Column(Text, nullable=False, unique=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    user = relationship("User", back_populates="reset_tokens")


Index("idx_symptoms_user", Symptom.user_id, Symptom.name)
Index("idx_habits_user", Habit.user_id, Habit.name)
Index("idx_medications_user", Medication.user_id, Medication.is_active)
Index("idx_symptom_logs_user_date", SymptomLog.user_id, SymptomLog.logged_at)
Index("idx_mood_logs_user_date", MoodLog.user_id, MoodLog.logged_at)
Index("idx_medication_logs_user_date", MedicationLog.user_id, MedicationLog.created_at)
Index("idx_habit_logs_user_date", HabitLog.user_id, HabitLog.logged_at)
