import os
import sqlite3

import pytest
from dotenv import load_dotenv

from app.main import app
from app.routers import tools

# Load .env once for tests
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
ENV_PATH = os.path.join(ROOT, ".env")
load_dotenv(ENV_PATH)


SHOP_SCHEMA = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY,
    email TEXT NOT NULL,
    role TEXT DEFAULT 'user'
);
CREATE TABLE posts (
    id INTEGER PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users(id),
    title TEXT
);
CREATE TABLE comments (
    id INTEGER PRIMARY KEY,
    user_id INTEGER REFERENCES users(id),
    post_id INTEGER REFERENCES posts(id),
    body TEXT
);
CREATE UNIQUE INDEX idx_users_email ON users(email);
CREATE INDEX idx_comments_post_user ON comments(post_id, user_id);
INSERT INTO users (id, email) VALUES (1, 'alice@example.com'), (2, 'bob@example.com');
INSERT INTO posts (id, user_id, title) VALUES (1, 1, 'Hello'), (2, 1, 'Again'), (3, 2, 'Hi');
INSERT INTO comments (id, user_id, post_id, body) VALUES (1, 2, 1, 'Nice');
"""


def make_shop_db(path) -> str:
    """Create the users/posts/comments SQLite DB used across tests."""
    conn = sqlite3.connect(str(path))
    try:
        conn.executescript(SHOP_SCHEMA)
        conn.commit()
    finally:
        conn.close()
    return str(path)


@pytest.fixture
def shop_db(tmp_path) -> str:
    return make_shop_db(tmp_path / "shop.db")


@pytest.fixture
def shop_db_factory(tmp_path):
    def make(filename: str) -> str:
        return make_shop_db(tmp_path / filename)

    return make


@pytest.fixture
def empty_db(tmp_path) -> str:
    path = tmp_path / "empty.db"
    conn = sqlite3.connect(str(path))
    try:
        # Writes the file header so the file is a valid, table-less database.
        conn.execute("PRAGMA user_version = 1")
        conn.commit()
    finally:
        conn.close()
    return str(path)


@pytest.fixture(autouse=True)
def disable_api_key_auth():
    """Disable X-API-Key auth for tests."""
    prev = app.dependency_overrides.get(tools.require_api_key)
    app.dependency_overrides[tools.require_api_key] = lambda: None
    try:
        yield
    finally:
        if prev is None:
            app.dependency_overrides.pop(tools.require_api_key, None)
        else:
            app.dependency_overrides[tools.require_api_key] = prev
