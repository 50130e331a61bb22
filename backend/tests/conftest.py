import os
import tempfile
from pathlib import Path

import pytest

# Point the app at a throwaway database before `portal` is imported.
_TMP_DIR = Path(tempfile.mkdtemp(prefix="portal-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'test.db'}"
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("ENV", "dev")


@pytest.fixture(autouse=True)
def reset_db():
    """Give every test empty tables."""
    from portal.database import create_db_and_tables, drop_db_and_tables

    drop_db_and_tables()
    create_db_and_tables()
    yield


@pytest.fixture
def make_user():
    """Register a user through the API and return `(headers, user)`."""
    from fastapi.testclient import TestClient
    from portal.main import app

    client = TestClient(app)

    def _make(username="alice", email=None, password="secret1", role="user"):
        email = email or f"{username}@example.com"
        r = client.post('/api/auth/register', json={
            'username': username, 'email': email, 'password': password, 'role': role,
        })
        assert r.status_code == 201, r.text
        data = r.json()['data']
        return {'Authorization': f"Bearer {data['token']}"}, data['user']

    return _make
