"""Tests for request validation."""

from datetime import datetime

import pytest

from conftest import REGISTRATION
from models import (
    ValidationError, parse_timestamp, validate_profile_update, validate_registration,
    validate_workout,
)

NOW = datetime(2026, 10, 19, 8, 30)


class TestValidateWorkout:
    def test_defaults(self):
        cleaned = validate_workout({'type': 'cardio', 'name': ' Easy run ', 'duration': 30}, now=NOW)
        assert cleaned == {
            'type': 'cardio',
            'name': 'Easy run',
            'duration': 30,
            'calories_burned': 0,
            'intensity': 'medium',
            'notes': None,
            'workout_date': NOW,
        }

    def test_missing_required_fields(self):
        with pytest.raises(ValidationError) as exc:
            validate_workout({'type': 'cardio', 'name': 'run'})
        assert exc.value.messages == ['Type, name, and duration are required']

    def test_zero_duration_rejected(self):
        with pytest.raises(ValidationError, match='Duration must be at least 1 minute'):
            validate_workout({'type': 'cardio', 'name': 'run', 'duration': 0})

    def test_negative_calories_rejected(self):
        with pytest.raises(ValidationError, match='Calories cannot be negative'):
            validate_workout({'type': 'cardio', 'name': 'run', 'duration': 10, 'caloriesBurned': -5})

    def test_collects_every_error(self):
        with pytest.raises(ValidationError) as exc:
            validate_workout({
                'type': 'dance',
                'name': 'x',
                'duration': 10,
                'intensity': 'extreme',
                'notes': 'n' * 501,
            })
        assert len(exc.value.messages) == 3
        assert 'Notes cannot exceed 500 characters' in exc.value.messages

    def test_parses_workout_date(self):
        cleaned = validate_workout({
            'type': 'strength', 'name': 'legs', 'duration': '45',
            'workoutDate': '2026-10-01T18:30:00Z',
        })
        assert cleaned['duration'] == 45
        assert cleaned['workout_date'] == datetime(2026, 10, 1, 18, 30)

    @pytest.mark.parametrize('duration, message', [
        (10 ** 20, 'Duration cannot exceed 1440 minutes'),
        (1441, 'Duration cannot exceed 1440 minutes'),
        (10 ** 400, 'Duration must be a number'),
        (float('inf'), 'Duration must be a number'),
    ])
    def test_oversized_duration_rejected(self, duration, message):
        with pytest.raises(ValidationError) as exc:
            validate_workout({'type': 'cardio', 'name': 'run', 'duration': duration})
        assert exc.value.messages == [message]

    def test_oversized_calories_rejected(self):
        with pytest.raises(ValidationError, match='Calories cannot exceed 20000'):
            validate_workout({'type': 'cardio', 'name': 'run', 'duration': 10, 'caloriesBurned': 10 ** 20})

    def test_full_day_duration_allowed(self):
        cleaned = validate_workout({'type': 'sports', 'name': 'ultra', 'duration': 1440}, now=NOW)
        assert cleaned['duration'] == 1440

    def test_bad_workout_date(self):
        with pytest.raises(ValidationError, match='ISO date'):
            validate_workout({'type': 'other', 'name': 'x', 'duration': 5, 'workoutDate': 'yesterday'})


class TestValidateRegistration:
    def test_normalizes_email_and_defaults_level(self):
        data = dict(REGISTRATION)
        data.pop('fitnessLevel')
        cleaned = validate_registration(data)
        assert cleaned['email'] == 'sam@example.com'
        assert cleaned['fitness_level'] == 'beginner'
        assert cleaned['target_weight'] is None

    def test_errors_are_joined(self):
        with pytest.raises(ValidationError) as exc:
            validate_registration({'email': 'nope', 'password': '123', 'age': 10})
        message = str(exc.value)
        assert 'Please enter a valid email' in message
        assert 'Password must be at least 6 characters' in message
        assert 'Age must be at least 13' in message
        assert 'Name is required' in message
        assert ', ' in message

    def test_huge_age_is_a_validation_error(self):
        with pytest.raises(ValidationError) as exc:
            validate_registration(dict(REGISTRATION, age=10 ** 400))
        assert exc.value.messages == ['Age must be a number']

    @pytest.mark.parametrize('field', ['height', 'weight', 'targetWeight'])
    @pytest.mark.parametrize('value', [float('inf'), float('nan'), 10 ** 400, '1e999'])
    def test_non_finite_measurements_rejected(self, field, value):
        with pytest.raises(ValidationError, match='must be a number'):
            validate_registration(dict(REGISTRATION, **{field: value}))

    def test_enums_checked(self):
        data = dict(REGISTRATION, gender='robot', fitnessGoal='fly')
        with pytest.raises(ValidationError) as exc:
            validate_registration(data)
        assert len(exc.value.messages) == 2


class TestValidateProfileUpdate:
    def test_ignores_unknown_fields(self):
        cleaned = validate_profile_update({'weight': 78.5, 'email': 'x@y.z', 'password': 'p'})
        assert cleaned == {'weight': 78.5}

    def test_clears_target_weight(self):
        assert validate_profile_update({'targetWeight': None}) == {'target_weight': None}

    def test_required_field_cannot_be_blanked(self):
        with pytest.raises(ValidationError, match='Name is required'):
            validate_profile_update({'name': '  '})


def test_parse_timestamp_date_only():
    assert parse_timestamp('2026-10-19') == datetime(2026, 10, 19)
