"""
Database module for AI Fitness Coach
Handles PostgreSQL and SQLite connections and schema
"""

import os
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path

# Try to import psycopg2 for PostgreSQL support
try:
    import psycopg2
    HAS_POSTGRES = True
except ImportError:
    HAS_POSTGRES = False

# Unique-constraint violations from either backend
INTEGRITY_ERRORS = (sqlite3.IntegrityError, psycopg2.IntegrityError) if HAS_POSTGRES else (sqlite3.IntegrityError,)

logger = logging.getLogger(__name__)

def get_db_url():
    """Get database URL from environment variable"""
    # Railway provides DATABASE_URL, local dev can use POSTGRES_URL
    db_url = os.getenv('DATABASE_URL') or os.getenv('POSTGRES_URL')
    if not db_url:
        # Fallback to SQLite for local development
        return 'sqlite:///fitness_coach.db'
    return db_url

def is_sqlite(db_url):
    """Check if database URL is SQLite"""
    return bool(db_url) and db_url.startswith('sqlite:///')

def adapt_query(query):
    """Rewrite '?' placeholders to '%s' when talking to PostgreSQL"""
    if is_sqlite(get_db_url()):
        return query
    return query.replace('?', '%s')

@contextmanager
def get_db_connection():
    """Get a database connection with automatic cleanup"""
    db_url = get_db_url()

    # Check if it's SQLite
    if is_sqlite(db_url):
        db_path = db_url.replace('sqlite:///', '')
        # Make path absolute
        if not os.path.isabs(db_path):
            db_path = str(Path(__file__).parent / db_path)
        conn = sqlite3.connect(db_path)
        conn.row_factory = sqlite3.Row  # Enable column access by name
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
    else:
        # PostgreSQL
        if not HAS_POSTGRES:
            raise ValueError("PostgreSQL URL provided but psycopg2 not installed. Install with: pip install psycopg2-binary")

        # Handle Railway's postgres:// URL format (convert to postgresql://)
        if db_url.startswith('postgres://'):
            db_url = db_url.replace('postgres://', 'postgresql://', 1)

        conn = psycopg2.connect(db_url)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

def init_db():
    """Initialize database tables - works with both PostgreSQL and SQLite"""
    use_sqlite = is_sqlite(get_db_url())
    # Only the primary key syntax differs between the two backends
    pk = "INTEGER PRIMARY KEY AUTOINCREMENT" if use_sqlite else "SERIAL PRIMARY KEY"

    with get_db_connection() as conn:
        cur = conn.cursor()

        # Users table (profile lives on the user row)
        cur.execute(f"""
            CREATE TABLE IF NOT EXISTS users (
                id {pk},
                email TEXT UNIQUE NOT NULL,
                password_hash TEXT NOT NULL,
                name TEXT NOT NULL,
                age INTEGER NOT NULL,
                gender TEXT NOT NULL,
                height REAL NOT NULL,
                weight REAL NOT NULL,
                fitness_goal TEXT NOT NULL,
                fitness_level TEXT NOT NULL DEFAULT 'beginner',
                target_weight REAL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        cur.execute("""
            CREATE INDEX IF NOT EXISTS idx_users_email ON users(email)
        """)

        # Bounded chat log, one row per turn
        cur.execute(f"""
            CREATE TABLE IF NOT EXISTS chat_turns (
                id {pk},
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                user_message TEXT NOT NULL,
                ai_response TEXT NOT NULL,
                timestamp TEXT NOT NULL
            )
        """)
        cur.execute("""
            CREATE INDEX IF NOT EXISTS idx_chat_turns_user_id ON chat_turns(user_id)
        """)

        # Workouts table
        cur.execute(f"""
            CREATE TABLE IF NOT EXISTS workouts (
                id {pk},
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                type TEXT NOT NULL,
                name TEXT NOT NULL,
                duration INTEGER NOT NULL CHECK (duration >= 1),
                calories_burned INTEGER NOT NULL DEFAULT 0 CHECK (calories_burned >= 0),
                intensity TEXT NOT NULL DEFAULT 'medium',
                notes TEXT,
                workout_date TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        # Recency queries are always scoped to one user
        cur.execute("""
            CREATE INDEX IF NOT EXISTS idx_workouts_user_date ON workouts(user_id, workout_date)
        """)

    logger.info("Database tables initialized successfully")

def check_db_connection():
    """Check if database connection works"""
    try:
        with get_db_connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT 1")
            return True
    except Exception as e:
        logger.error("Database connection failed: %s", e)
        return False

# ============================================================================
# User lookups (shared by the API and the auth decorator)
# ============================================================================

USER_COLUMNS = """id, email, name, age, gender, height, weight, fitness_goal,
                  fitness_level, target_weight, created_at, updated_at"""

def row_to_dict(cur, row):
    """Column-name access for both sqlite3.Row and psycopg2 tuples"""
    if row is None:
        return None
    columns = [col[0] for col in cur.description]
    return dict(zip(columns, row))

def get_user_by_email(email, with_password=False):
    columns = USER_COLUMNS + (", password_hash" if with_password else "")
    with get_db_connection() as conn:
        cur = conn.cursor()
        cur.execute(adapt_query(f"SELECT {columns} FROM users WHERE email = ?"), (email,))
        return row_to_dict(cur, cur.fetchone())

def get_user_by_id(user_id):
    with get_db_connection() as conn:
        cur = conn.cursor()
        cur.execute(adapt_query(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?"), (user_id,))
        return row_to_dict(cur, cur.fetchone())
