import os
import time
from datetime import date, datetime

import pytest

from gelos.infrastructure.adapters.study.memory import InMemoryStudyRepository

TODAY = date(2026, 10, 17)
NOW = datetime(2026, 10, 17, 9, 30)


@pytest.fixture
def clock():
    """Fixed local 'now' so due dates are deterministic."""
    return lambda: NOW


@pytest.fixture
def memory_repo(clock):
    """In-memory repository with a three-card deck and no progress."""
    repo = InMemoryStudyRepository(clock=clock)
    repo.add_card("spanish", "hablar", front="hablar", back="to speak")
    repo.add_card("spanish", "comer", front="comer", back="to eat")
    repo.add_card("spanish", "vivir", front="vivir", back="to live")
    return repo


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Isolate config files and GELOS_* env vars from the developer machine
    monkeypatch.setenv("HOME", str(home))
    for var in (
        "GELOS_BACKEND",
        "GELOS_DECK_DIR",
        "GELOS_POSTGREST_URL",
        "GELOS_POSTGREST_KEY",
        "GELOS_LEARNER_ID",
        "GELOS_SEED",
    ):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def berlin_tz():
    """Local zone pinned to Central European time (UTC+2 in October 2026)."""
    previous = os.environ.get("TZ")
    os.environ["TZ"] = "CET-1CEST,M3.5.0,M10.5.0/3"
    time.tzset()
    yield
    if previous is None:
        del os.environ["TZ"]
    else:
        os.environ["TZ"] = previous
    time.tzset()
