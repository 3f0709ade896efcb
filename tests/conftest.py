"""Shared fixtures for all tests.

The database URL is read when app.database is imported, so the temporary
SQLite file has to be in the environment before any test module loads.
"""

import json
import os
import tempfile
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest

_TMP_DIR = tempfile.mkdtemp(prefix="voice-task-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR}/tasks.db"
os.environ["OPENAI_API_KEY"] = "sk-test"
os.environ["TRANSCRIPTION_ENGINE"] = "whisper-1"

from engine.models import TimeContext  # noqa: E402

OPENAI_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def chat_response(content):
    """Shape of openai's ChatCompletion, enough for FieldExtractor."""
    if isinstance(content, dict):
        content = json.dumps(content)
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def http_response(status_code: int, text: str = "") -> httpx.Response:
    return httpx.Response(status_code, request=OPENAI_REQUEST, text=text)


@pytest.fixture
def ny_ctx():
    return TimeContext.create("America/New_York", now=datetime(2024, 6, 10, tzinfo=timezone.utc))


@pytest.fixture
def utc_ctx():
    return TimeContext.create("UTC", now=datetime(2024, 1, 1, tzinfo=timezone.utc))


@pytest.fixture
def chat_client():
    """A MagicMock standing in for openai.OpenAI."""
    return MagicMock()


@pytest.fixture
def db_session():
    """Fresh tables for every test."""
    from app.database import Base, SessionLocal, engine, init_db

    init_db()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
