import os
import sys
import tempfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
for path in (ROOT, ROOT / "tests"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from config.roles import BUNDLED_CATALOG, RoleCatalog
from config.settings import settings
from interview.sessions import InterviewService
from planner.facade import ActiveProvider, ProviderFacade
from storage.migrate import migrate

from fakes import FakeClock, ScriptedProvider


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    migrate(db_path)
    try:
        yield
    finally:
        td.cleanup()


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def facade(provider):
    return ProviderFacade(ActiveProvider(name=provider.name, provider=provider))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def catalog():
    return RoleCatalog(str(BUNDLED_CATALOG))


@pytest.fixture
def service(facade, clock, catalog):
    return InterviewService(facade, catalog=catalog, clock=clock)


@pytest.fixture
def mock_config():
    return {
        "role": "Software Engineer",
        "seniority": "Senior",
        "interview_types": ["Behavioral", "Technical"],
        "company": "Acme",
        "duration_minutes": 30,
        "interview_mode": "mock",
    }


@pytest.fixture
def practice_config(mock_config):
    return dict(mock_config, interview_mode="practice")
