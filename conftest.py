"""Pytest fixtures for the fitness coach API."""

import pytest

from app import create_app


class FakeProvider:
    """Stand-in for a remote provider: answers with `reply` or raises `error`"""

    def __init__(self, name, reply=None, error=None):
        self.name = name
        self.reply = reply
        self.error = error
        self.calls = []

    def generate(self, user_message, profile):
        self.calls.append((user_message, profile))
        if self.error:
            raise self.error
        return self.reply


REGISTRATION = {
    'email': 'Sam@Example.com',
    'password': 'secret123',
    'name': 'Sam',
    'age': 30,
    'gender': 'other',
    'height': 175,
    'weight': 80,
    'fitnessGoal': 'muscle_gain',
    'fitnessLevel': 'intermediate',
}


@pytest.fixture
def db_url(tmp_path, monkeypatch):
    """Point the database layer at a throwaway SQLite file."""
    url = f"sqlite:///{tmp_path / 'test.db'}"
    monkeypatch.setenv('DATABASE_URL', url)
    monkeypatch.delenv('POSTGRES_URL', raising=False)
    return url


@pytest.fixture
def providers():
    return {
        'gemini': FakeProvider('gemini', reply='Gemini says lift heavy'),
        'groq': FakeProvider('groq', reply='Groq says run'),
    }


@pytest.fixture
def app(db_url, providers):
    return create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'AI_PROVIDER': 'gemini',
        'AI_PROVIDERS': providers,
        'DEVELOPMENT': False,
        'IS_PRODUCTION': False,
    })


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def registered(client):
    """Register the default user; returns (token, user)."""
    response = client.post('/api/auth/register', json=REGISTRATION)
    assert response.status_code == 201
    body = response.get_json()
    return body['token'], body['user']


@pytest.fixture
def auth_headers(registered):
    token, _ = registered
    return {'Authorization': f'Bearer {token}'}
