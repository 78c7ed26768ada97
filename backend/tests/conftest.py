import os
import tempfile
from pathlib import Path

# Point the app at a throwaway SQLite file before `quizapp` is imported.
_DB_DIR = Path(tempfile.mkdtemp(prefix="quizapp-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'test.db'}"
os.environ.setdefault("ENV", "dev")

import pytest  # noqa: E402


@pytest.fixture
def auth_headers():
    """Register/login a user and return bearer headers for it."""
    from fastapi.testclient import TestClient
    from quizapp.main import app

    client = TestClient(app)

    def _headers(username: str, password: str = "pw"):
        client.post('/auth/register', json={'username': username, 'password': password})
        r = client.post('/auth/login', json={'username': username, 'password': password})
        assert r.status_code == 200
        return {'Authorization': f"Bearer {r.json()['access_token']}"}

    return _headers
