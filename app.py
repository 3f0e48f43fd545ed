#!/usr/bin/env python3
"""
AI Fitness Coach - API
Registration/login, profile, AI coach chat and workout progress tracking
"""

import os
import logging
import secrets

from flask import Blueprint, Flask, current_app, g, jsonify, request
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix
from dotenv import load_dotenv

from auth import generate_token, hash_password, require_auth, verify_password
from coach import build_chain, create_providers
from database import (
    INTEGRITY_ERRORS, adapt_query, check_db_connection, get_db_connection, get_db_url,
    get_user_by_email, get_user_by_id, init_db, is_sqlite, row_to_dict,
)
from models import (
    ChatTurn, NotFoundError, UserProfile, ValidationError, WorkoutRecord, format_timestamp,
    parse_timestamp, utcnow, validate_profile_update, validate_registration, validate_workout,
)
from progress import compute_stats, parse_days, window_start

load_dotenv()

# Chat log is capped per user; older turns are dropped, not archived
MAX_CHAT_TURNS = 50
CHAT_HISTORY_PAGE = 20
DEFAULT_WORKOUT_PAGE = 20
MAX_WORKOUT_PAGE = 100

api = Blueprint('api', __name__)


def load_config():
    """Read settings from the environment (.env is loaded at import)"""
    # Railway sets DATABASE_URL, or we check for Railway env vars
    # Also check if SECRET_KEY is explicitly set (indicates production setup)
    is_production_env = (
        'postgres' in os.getenv('DATABASE_URL', '').lower()
    ) or os.getenv('RAILWAY_ENVIRONMENT') is not None or os.getenv('RAILWAY') is not None or os.getenv('SECRET_KEY') is not None

    return {
        # Set SECRET_KEY in production or tokens stop working after a restart
        'SECRET_KEY': os.getenv('SECRET_KEY') or secrets.token_hex(32),
        'IS_PRODUCTION': is_production_env or os.getenv('FLASK_ENV') == 'production',
        'DEVELOPMENT': os.getenv('FLASK_ENV') == 'development',
        'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO').upper(),
        'AI_PROVIDER': os.getenv('AI_PROVIDER', 'gemini'),
        'GEMINI_API_KEY': os.getenv('GEMINI_API_KEY'),
        'GEMINI_MODEL': os.getenv('GEMINI_MODEL'),
        'GROQ_API_KEY': os.getenv('GROQ_API_KEY'),
        'GROQ_MODEL': os.getenv('GROQ_MODEL'),
    }


def create_app(config=None):
    """Build the Flask app; `config` overrides values read from the environment"""
    app = Flask(__name__)
    app.config.update(load_config())
    if config:
        app.config.update(config)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )
    app.logger.setLevel(app.config['LOG_LEVEL'])

    # Trust Railway's proxy headers for HTTPS detection
    if app.config['IS_PRODUCTION']:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=1)

    if not check_db_connection():
        raise RuntimeError(f"Database not available at {get_db_url()}")
    init_db()

    # Providers are built once per app and handed to the chain
    providers = app.config.get('AI_PROVIDERS')
    if providers is None:
        providers = create_providers(app.config)
    app.extensions['coach'] = build_chain(app.config['AI_PROVIDER'], providers)

    app.register_blueprint(api)
    register_error_handlers(app)

    if app.config['DEVELOPMENT']:
        @app.before_request
        def log_request():
            app.logger.info("%s %s", request.method, request.path)

    return app


def register_error_handlers(app):
    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        return jsonify({'error': ', '.join(e.messages)}), 400

    @app.errorhandler(NotFoundError)
    def handle_not_found(e):
        return jsonify({'error': str(e) or 'Not found'}), 404

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        if e.code == 404:
            return jsonify({'error': 'Route not found', 'path': request.path}), 404
        return jsonify({'error': e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        app.logger.exception("Server error on %s %s", request.method, request.path)
        body = {'error': 'Internal server error'}
        if app.config['DEVELOPMENT']:
            body['detail'] = str(e)
        return jsonify(body), 500


def get_coach():
    return current_app.extensions['coach']


def get_json_body():
    """Request JSON as a dict; anything else counts as an empty body"""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


# ============================================================================
# Database Helper Functions
# ============================================================================

WORKOUT_COLUMNS = """id, user_id, type, name, duration, calories_burned, intensity,
                     notes, workout_date, created_at, updated_at"""


def public_profile(row):
    """User row -> public profile (no password hash)"""
    return {
        'id': row['id'],
        'name': row['name'],
        'email': row['email'],
        'age': row['age'],
        'gender': row['gender'],
        'height': row['height'],
        'weight': row['weight'],
        'fitnessGoal': row['fitness_goal'],
        'fitnessLevel': row['fitness_level'],
        'targetWeight': row['target_weight'],
    }


def workout_from_row(row):
    return WorkoutRecord(
        id=row['id'],
        user_id=row['user_id'],
        type=row['type'],
        name=row['name'],
        duration=row['duration'],
        calories_burned=row['calories_burned'] or 0,
        intensity=row['intensity'],
        notes=row['notes'],
        workout_date=parse_timestamp(row['workout_date']),
        created_at=parse_timestamp(row['created_at']),
        updated_at=parse_timestamp(row['updated_at']),
    )


def create_user(fields):
    """Insert a validated user - returns the new row, or None if the email is taken"""
    now = format_timestamp(utcnow())
    with get_db_connection() as conn:
        cur = conn.cursor()
        cur.execute(adapt_query("SELECT id FROM users WHERE email = ?"), (fields['email'],))
        if cur.fetchone():
            return None

        values = (
            fields['email'], hash_password(fields['password']), fields['name'], fields['age'],
            fields['gender'], fields['height'], fields['weight'], fields['fitness_goal'],
            fields.get('fitness_level', 'beginner'), fields.get('target_weight'), now, now,
        )
        insert = """
            INSERT INTO users (email, password_hash, name, age, gender, height, weight,
                               fitness_goal, fitness_level, target_weight, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        try:
            if is_sqlite(get_db_url()):
                cur.execute(insert, values)
                user_id = cur.lastrowid
            else:
                cur.execute(adapt_query(insert) + " RETURNING id", values)
                user_id = cur.fetchone()[0]
        except INTEGRITY_ERRORS:
            # Lost a race with another registration for the same email
            return None

    return get_user_by_id(user_id)


def authenticate_user(email, password):
    """Return the user row for valid credentials, else None (same for unknown email)"""
    user = get_user_by_email(email, with_password=True)
    if not verify_password(user['password_hash'] if user else None, password):
        return None
    user.pop('password_hash', None)
    return user


def update_user_profile(user_id, fields):
    """Apply validated profile fields; column names come from validate_profile_update"""
    if fields:
        assignments = ', '.join(f"{column} = ?" for column in fields)
        values = list(fields.values()) + [format_timestamp(utcnow()), user_id]
        with get_db_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                adapt_query(f"UPDATE users SET {assignments}, updated_at = ? WHERE id = ?"),
                values,
            )
    return get_user_by_id(user_id)


def append_chat_turn(user_id, turn, limit=MAX_CHAT_TURNS):
    """Append a turn, then keep only the most recent `limit` turns for this user"""
    with get_db_connection() as conn:
        cur = conn.cursor()
        cur.execute(adapt_query("""
            INSERT INTO chat_turns (user_id, user_message, ai_response, timestamp)
            VALUES (?, ?, ?, ?)
        """), (user_id, turn.user_message, turn.ai_response, format_timestamp(turn.timestamp)))
        cur.execute(adapt_query("""
            DELETE FROM chat_turns
            WHERE user_id = ? AND id NOT IN (
                SELECT id FROM (
                    SELECT id FROM chat_turns WHERE user_id = ? ORDER BY id DESC LIMIT ?
                ) AS recent
            )
        """), (user_id, user_id, limit))


def get_chat_turns(user_id, limit=None):
    """Chat turns oldest-first; with a limit, only the most recent `limit`"""
    with get_db_connection() as conn:
        cur = conn.cursor()
        if limit:
            cur.execute(adapt_query("""
                SELECT user_message, ai_response, timestamp FROM chat_turns
                WHERE user_id = ? ORDER BY id DESC LIMIT ?
            """), (user_id, limit))
            rows = list(reversed(cur.fetchall()))
        else:
            cur.execute(adapt_query("""
                SELECT user_message, ai_response, timestamp FROM chat_turns
                WHERE user_id = ? ORDER BY id ASC
            """), (user_id,))
            rows = cur.fetchall()
    return [ChatTurn(row[0], row[1], parse_timestamp(row[2])) for row in rows]


def count_chat_turns(user_id):
    with get_db_connection() as conn:
        cur = conn.cursor()
        cur.execute(adapt_query("SELECT COUNT(*) FROM chat_turns WHERE user_id = ?"), (user_id,))
        return cur.fetchone()[0]


def clear_chat_turns(user_id):
    with get_db_connection() as conn:
        cur = conn.cursor()
        cur.execute(adapt_query("DELETE FROM chat_turns WHERE user_id = ?"), (user_id,))


def add_workout(user_id, fields):
    """Insert a validated workout and return it"""
    now = utcnow()
    values = (
        user_id, fields['type'], fields['name'], fields['duration'], fields['calories_burned'],
        fields['intensity'], fields['notes'], format_timestamp(fields['workout_date']),
        format_timestamp(now), format_timestamp(now),
    )
    insert = """
        INSERT INTO workouts (user_id, type, name, duration, calories_burned, intensity,
                              notes, workout_date, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    """
    with get_db_connection() as conn:
        cur = conn.cursor()
        if is_sqlite(get_db_url()):
            cur.execute(insert, values)
            workout_id = cur.lastrowid
        else:
            cur.execute(adapt_query(insert) + " RETURNING id", values)
            workout_id = cur.fetchone()[0]

    return WorkoutRecord(
        id=workout_id, user_id=user_id, type=fields['type'], name=fields['name'],
        duration=fields['duration'], calories_burned=fields['calories_burned'],
        intensity=fields['intensity'], notes=fields['notes'],
        workout_date=fields['workout_date'], created_at=now, updated_at=now,
    )


def get_workouts(user_id, limit=DEFAULT_WORKOUT_PAGE, skip=0):
    """Newest workouts first, paged; returns (workouts, total)"""
    with get_db_connection() as conn:
        cur = conn.cursor()
        cur.execute(adapt_query(f"""
            SELECT {WORKOUT_COLUMNS} FROM workouts
            WHERE user_id = ?
            ORDER BY workout_date DESC, id DESC
            LIMIT ? OFFSET ?
        """), (user_id, limit, skip))
        workouts = [workout_from_row(row_to_dict(cur, row)) for row in cur.fetchall()]

        cur.execute(adapt_query("SELECT COUNT(*) FROM workouts WHERE user_id = ?"), (user_id,))
        total = cur.fetchone()[0]
    return workouts, total


def get_workouts_since(user_id, start):
    """Workouts on or after `start`, oldest first"""
    with get_db_connection() as conn:
        cur = conn.cursor()
        cur.execute(adapt_query(f"""
            SELECT {WORKOUT_COLUMNS} FROM workouts
            WHERE user_id = ? AND workout_date >= ?
            ORDER BY workout_date ASC, id ASC
        """), (user_id, format_timestamp(start)))
        return [workout_from_row(row_to_dict(cur, row)) for row in cur.fetchall()]


def delete_workout_for_user(workout_id, user_id):
    """Delete only if the user owns it - True when a row was removed"""
    with get_db_connection() as conn:
        cur = conn.cursor()
        cur.execute(
            adapt_query("DELETE FROM workouts WHERE id = ? AND user_id = ?"),
            (workout_id, user_id),
        )
        return cur.rowcount > 0


def _int_arg(name, default, minimum=0, maximum=None):
    try:
        value = int(request.args.get(name, default))
    except (TypeError, ValueError):
        value = default
    value = max(minimum, value)
    if maximum is not None:
        value = min(maximum, value)
    return value


# ============================================================================
# Routes
# ============================================================================

@api.route('/health', methods=['GET'])
def health():
    """Health check"""
    return jsonify({
        'status': 'OK',
        'message': 'Fitness Trainer API is running',
        'timestamp': format_timestamp(utcnow()),
    })


@api.route('/api/auth/register', methods=['POST'])
def register():
    """Register a new user and log them in"""
    fields = validate_registration(get_json_body())

    user = create_user(fields)
    if not user:
        return jsonify({'error': 'User with this email already exists'}), 400

    current_app.logger.info("Registered user %s", user['id'])
    return jsonify({
        'message': 'User registered successfully',
        'token': generate_token(user['id']),
        'user': public_profile(user),
    }), 201


@api.route('/api/auth/login', methods=['POST'])
def login():
    """Login a user"""
    data = get_json_body()
    email = str(data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    if not email or not password:
        return jsonify({'error': 'Email and password are required'}), 400

    user = authenticate_user(email, password)
    if not user:
        return jsonify({'error': 'Invalid email or password'}), 401

    return jsonify({
        'message': 'Login successful',
        'token': generate_token(user['id']),
        'user': public_profile(user),
    })


@api.route('/api/auth/profile', methods=['GET'])
@require_auth
def get_profile():
    """Get the current user's profile"""
    user = get_user_by_id(g.user_id)
    return jsonify({'user': public_profile(user)})


@api.route('/api/auth/profile', methods=['PUT'])
@require_auth
def update_profile():
    """Update allowed profile fields"""
    fields = validate_profile_update(get_json_body())
    user = update_user_profile(g.user_id, fields)
    return jsonify({
        'message': 'Profile updated successfully',
        'user': public_profile(user),
    })


@api.route('/api/chat/message', methods=['POST'])
@require_auth
def send_message():
    """Get an AI coach reply and save the turn"""
    message = get_json_body().get('message')
    if not isinstance(message, str) or not message.strip():
        return jsonify({'error': 'Message cannot be empty'}), 400
    message = message.strip()

    reply = get_coach().reply(message, current_profile())

    turn = ChatTurn(user_message=message, ai_response=reply, timestamp=utcnow())
    append_chat_turn(g.user_id, turn)

    return jsonify({
        'message': 'Message sent successfully',
        'reply': reply,
        'timestamp': format_timestamp(turn.timestamp),
    })


@api.route('/api/chat/history', methods=['GET'])
@require_auth
def get_chat_history():
    """Last 20 chat turns, newest first"""
    turns = get_chat_turns(g.user_id, limit=CHAT_HISTORY_PAGE)
    return jsonify({
        'history': [turn.to_dict() for turn in reversed(turns)],
        'total': count_chat_turns(g.user_id),
    })


@api.route('/api/chat/history', methods=['DELETE'])
@require_auth
def clear_chat_history():
    """Clear chat history"""
    clear_chat_turns(g.user_id)
    return jsonify({'message': 'Chat history cleared successfully'})


def current_profile():
    user = get_user_by_id(g.user_id)
    if not user:
        raise NotFoundError('User not found')
    return UserProfile.from_row(user)


@api.route('/api/chat/workout-plan', methods=['GET'])
@require_auth
def get_workout_plan():
    """Weekly workout plan for the current user (not saved to the chat log)"""
    return jsonify({'plan': get_coach().generate_workout_plan(current_profile())})


@api.route('/api/chat/nutrition-advice', methods=['GET'])
@require_auth
def get_nutrition_advice():
    """Nutrition advice for the current user (not saved to the chat log)"""
    return jsonify({'advice': get_coach().generate_nutrition_advice(current_profile())})


@api.route('/api/progress/workout', methods=['POST'])
@require_auth
def log_workout():
    """Log a new workout"""
    fields = validate_workout(get_json_body())
    workout = add_workout(g.user_id, fields)
    return jsonify({
        'message': 'Workout logged successfully',
        'workout': workout.to_dict(),
    }), 201


@api.route('/api/progress/workouts', methods=['GET'])
@require_auth
def list_workouts():
    """Workout history, newest first"""
    limit = _int_arg('limit', DEFAULT_WORKOUT_PAGE, minimum=1, maximum=MAX_WORKOUT_PAGE)
    skip = _int_arg('skip', 0)
    workouts, total = get_workouts(g.user_id, limit=limit, skip=skip)
    return jsonify({
        'workouts': [w.to_dict() for w in workouts],
        'total': total,
        'limit': limit,
        'skip': skip,
    })


@api.route('/api/progress/stats', methods=['GET'])
@require_auth
def get_stats():
    """Progress statistics for the last ?days= days (default 30)"""
    days = parse_days(request.args.get('days'))
    now = utcnow()
    workouts = get_workouts_since(g.user_id, window_start(days, now))
    return jsonify(compute_stats(workouts, days=days, now=now))


@api.route('/api/progress/workout/<int:workout_id>', methods=['DELETE'])
@require_auth
def delete_workout(workout_id):
    """Delete one of the current user's workouts"""
    # Same answer whether the workout is missing or someone else's
    if not delete_workout_for_user(workout_id, g.user_id):
        raise NotFoundError('Workout not found')
    return jsonify({'message': 'Workout deleted successfully'})


if __name__ == '__main__':
    app = create_app()
    port = int(os.getenv('PORT', 5000))
    app.logger.info("Server running on port %s", port)
    app.run(host='0.0.0.0', port=port, debug=app.config['DEVELOPMENT'])
