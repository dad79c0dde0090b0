import itertools
import random
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from vocabtest.app import create_app
from vocabtest.config import Settings
from vocabtest.database import init_db
from vocabtest.gateway import SQLiteGateway
from vocabtest.models import WordEntry
from vocabtest.quiz import QuizSessionManager
from vocabtest.vocabulary import VocabularyManager


@pytest.fixture
def settings(tmp_path):
    test_settings = Settings()
    test_settings.DB_DIR = str(tmp_path / "db")
    test_settings.LOG_DIR = str(tmp_path / "log")
    test_settings.COOKIE_SECURE = False
    return test_settings


@pytest.fixture
def gateway(settings):
    init_db(settings.db_path)
    return SQLiteGateway(settings.db_path)


@pytest.fixture
def clock():
    """Strictly increasing timestamps, one second apart."""
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    ticks = itertools.count()
    return lambda: (start + timedelta(seconds=next(ticks))).isoformat()


@pytest.fixture
def manager(gateway, clock):
    return QuizSessionManager(gateway, rng=random.Random(42), clock=clock)


@pytest.fixture
def alice(gateway):
    return gateway.create_user("alice", "not-a-real-hash", "2024-01-01T00:00:00+00:00")


@pytest.fixture
def bob(gateway):
    return gateway.create_user("bob", "not-a-real-hash", "2024-01-01T00:00:00+00:00")


@pytest.fixture
def vocab(gateway):
    return VocabularyManager(gateway)


@pytest.fixture
def word_list(vocab, alice):
    """Alice's list of five words, returned as (WordList, [Word])."""
    entries = [
        WordEntry(word="apple", meaning="苹果"),
        WordEntry(word="river", meaning="河流"),
        WordEntry(word="window", meaning="窗户"),
        WordEntry(word="garden", meaning="花园"),
        WordEntry(word="pencil", meaning="铅笔"),
    ]
    return vocab.create_list(alice, entries, title="Unit 1")


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def register():
    def _register(test_client, username="alice", password="secret123"):
        response = test_client.post(
            "/api/auth/register", json={"username": username, "password": password}
        )
        assert response.status_code == 200, response.text
        return response.json()["user"]

    return _register
