#!/usr/bin/env python3
"""
Domain models and input validation
Profiles, chat turns and workout records, plus the checks that run before
anything is written to the database
"""

import math
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class ValidationError(Exception):
    """Raised when request data fails validation - carries every field message"""

    def __init__(self, messages):
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        super().__init__(', '.join(self.messages))


class NotFoundError(Exception):
    """Record is absent or not owned by the acting user"""


class FitnessGoal(str, Enum):
    WEIGHT_LOSS = 'weight_loss'
    MUSCLE_GAIN = 'muscle_gain'
    GENERAL_FITNESS = 'general_fitness'
    ENDURANCE = 'endurance'


class FitnessLevel(str, Enum):
    BEGINNER = 'beginner'
    INTERMEDIATE = 'intermediate'
    ADVANCED = 'advanced'


class Gender(str, Enum):
    MALE = 'male'
    FEMALE = 'female'
    OTHER = 'other'


class WorkoutType(str, Enum):
    CARDIO = 'cardio'
    STRENGTH = 'strength'
    FLEXIBILITY = 'flexibility'
    SPORTS = 'sports'
    OTHER = 'other'


class Intensity(str, Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'


EMAIL_PATTERN = re.compile(r'^\S+@\S+\.\S+$')
MIN_PASSWORD_LENGTH = 6
MIN_AGE = 13
MAX_AGE = 120
MAX_NOTES_LENGTH = 500
MAX_DURATION_MINUTES = 24 * 60
MAX_CALORIES = 20000

PROFILE_FIELDS = [
    'name',
    'age',
    'gender',
    'height',
    'weight',
    'fitnessGoal',
    'fitnessLevel',
    'targetWeight',
]


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage format)"""
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def format_timestamp(value: datetime) -> str:
    return value.isoformat(timespec='seconds')


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO date or datetime into a naive UTC datetime"""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        # fromisoformat only learned the 'Z' suffix in 3.11
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Not a date: {value!r}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed.replace(microsecond=0)


@dataclass(frozen=True)
class UserProfile:
    """Public, identity-free view of a user used to personalize prompts"""
    name: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    fitness_goal: Optional[str] = None
    fitness_level: Optional[str] = None
    target_weight: Optional[float] = None

    @classmethod
    def from_row(cls, row) -> 'UserProfile':
        return cls(
            name=row['name'],
            age=row['age'],
            gender=row['gender'],
            height=row['height'],
            weight=row['weight'],
            fitness_goal=row['fitness_goal'],
            fitness_level=row['fitness_level'],
            target_weight=row['target_weight'],
        )


@dataclass(frozen=True)
class ChatTurn:
    user_message: str
    ai_response: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'userMessage': self.user_message,
            'aiResponse': self.ai_response,
            'timestamp': format_timestamp(self.timestamp),
        }


@dataclass(frozen=True)
class WorkoutRecord:
    type: str
    name: str
    duration: int
    workout_date: datetime
    calories_burned: int = 0
    intensity: str = Intensity.MEDIUM.value
    notes: Optional[str] = None
    id: Optional[int] = None
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user': self.user_id,
            'type': self.type,
            'name': self.name,
            'duration': self.duration,
            'caloriesBurned': self.calories_burned,
            'intensity': self.intensity,
            'notes': self.notes,
            'workoutDate': format_timestamp(self.workout_date),
            'createdAt': format_timestamp(self.created_at) if self.created_at else None,
            'updatedAt': format_timestamp(self.updated_at) if self.updated_at else None,
        }


# ============================================================================
# Validation
# ============================================================================

def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _number(value, label, errors: List[str], integer=False):
    """Coerce a JSON number (or numeric string); record an error otherwise"""
    if isinstance(value, bool):
        errors.append(f"{label} must be a number")
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        errors.append(f"{label} must be a number")
        return None
    if not math.isfinite(number):
        errors.append(f"{label} must be a number")
        return None
    if integer:
        if not number.is_integer():
            errors.append(f"{label} must be a whole number")
            return None
        return int(number)
    return number


def _choice(value, enum_cls, label, errors: List[str]):
    allowed = [member.value for member in enum_cls]
    if value not in allowed:
        errors.append(f"{label} must be one of: {', '.join(allowed)}")
        return None
    return value


def _validate_profile_fields(data: Dict[str, Any], errors: List[str], partial: bool) -> Dict[str, Any]:
    """Shared checks for registration (all required) and profile updates (partial)"""
    cleaned = {}
    required = {
        'name': 'Name is required',
        'age': 'Age is required',
        'gender': 'Gender is required',
        'height': 'Height is required',
        'weight': 'Weight is required',
        'fitnessGoal': 'Fitness goal is required',
    }

    for field in PROFILE_FIELDS:
        if partial and field not in data:
            continue
        value = data.get(field)
        if _blank(value):
            if field in required:
                errors.append(required[field])
            elif field == 'fitnessLevel' and not partial:
                cleaned['fitness_level'] = FitnessLevel.BEGINNER.value
            elif field == 'targetWeight':
                cleaned['target_weight'] = None
            continue

        if field == 'name':
            cleaned['name'] = str(value).strip()
        elif field == 'age':
            age = _number(value, 'Age', errors, integer=True)
            if age is not None:
                if age < MIN_AGE:
                    errors.append(f"Age must be at least {MIN_AGE}")
                elif age > MAX_AGE:
                    errors.append(f"Age must be less than {MAX_AGE}")
                else:
                    cleaned['age'] = age
        elif field == 'gender':
            gender = _choice(value, Gender, 'Gender', errors)
            if gender:
                cleaned['gender'] = gender
        elif field in ('height', 'weight', 'targetWeight'):
            label = {'height': 'Height', 'weight': 'Weight', 'targetWeight': 'Target weight'}[field]
            number = _number(value, label, errors)
            if number is not None:
                if number <= 0:
                    errors.append(f"{label} must be positive")
                else:
                    cleaned['target_weight' if field == 'targetWeight' else field] = number
        elif field == 'fitnessGoal':
            goal = _choice(value, FitnessGoal, 'Fitness goal', errors)
            if goal:
                cleaned['fitness_goal'] = goal
        elif field == 'fitnessLevel':
            level = _choice(value, FitnessLevel, 'Fitness level', errors)
            if level:
                cleaned['fitness_level'] = level

    return cleaned


def validate_registration(data: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a registration payload - returns normalized column values"""
    if not isinstance(data, dict):
        raise ValidationError('Invalid request body')

    errors = []
    cleaned = {}

    email = data.get('email')
    if _blank(email):
        errors.append('Email is required')
    else:
        email = str(email).strip().lower()
        if not EMAIL_PATTERN.match(email):
            errors.append('Please enter a valid email')
        else:
            cleaned['email'] = email

    password = data.get('password')
    if not password or not isinstance(password, str):
        errors.append('Password is required')
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    else:
        cleaned['password'] = password

    cleaned.update(_validate_profile_fields(data, errors, partial=False))

    if errors:
        raise ValidationError(errors)
    return cleaned


def validate_profile_update(data: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a profile update - unknown keys are ignored"""
    if not isinstance(data, dict):
        raise ValidationError('Invalid request body')

    errors = []
    cleaned = _validate_profile_fields(data, errors, partial=True)
    if errors:
        raise ValidationError(errors)
    return cleaned


def validate_workout(data: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Validate a workout log payload before it is persisted"""
    if not isinstance(data, dict):
        raise ValidationError('Invalid request body')

    if _blank(data.get('type')) or _blank(data.get('name')) or _blank(data.get('duration')):
        raise ValidationError('Type, name, and duration are required')

    errors = []
    cleaned = {'name': str(data['name']).strip()}

    workout_type = _choice(data['type'], WorkoutType, 'Workout type', errors)
    if workout_type:
        cleaned['type'] = workout_type

    duration = _number(data['duration'], 'Duration', errors, integer=True)
    if duration is not None:
        if duration < 1:
            errors.append('Duration must be at least 1 minute')
        elif duration > MAX_DURATION_MINUTES:
            errors.append(f"Duration cannot exceed {MAX_DURATION_MINUTES} minutes")
        else:
            cleaned['duration'] = duration

    calories = data.get('caloriesBurned')
    if _blank(calories):
        cleaned['calories_burned'] = 0
    else:
        calories = _number(calories, 'Calories', errors, integer=True)
        if calories is not None:
            if calories < 0:
                errors.append('Calories cannot be negative')
            elif calories > MAX_CALORIES:
                errors.append(f"Calories cannot exceed {MAX_CALORIES}")
            else:
                cleaned['calories_burned'] = calories

    intensity = data.get('intensity')
    if _blank(intensity):
        cleaned['intensity'] = Intensity.MEDIUM.value
    else:
        intensity = _choice(intensity, Intensity, 'Intensity', errors)
        if intensity:
            cleaned['intensity'] = intensity

    notes = data.get('notes')
    if _blank(notes):
        cleaned['notes'] = None
    elif len(str(notes)) > MAX_NOTES_LENGTH:
        errors.append(f"Notes cannot exceed {MAX_NOTES_LENGTH} characters")
    else:
        cleaned['notes'] = str(notes)

    workout_date = data.get('workoutDate')
    if _blank(workout_date):
        cleaned['workout_date'] = now or utcnow()
    else:
        try:
            cleaned['workout_date'] = parse_timestamp(workout_date)
        except (TypeError, ValueError):
            errors.append('Workout date must be an ISO date')

    if errors:
        raise ValidationError(errors)
    return cleaned
