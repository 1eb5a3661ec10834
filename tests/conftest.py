import os

import pytest

# The OpenAI client is never reached in tests, but the key must exist.
os.environ.setdefault("OPENAI_API_KEY", "test")

from fastapi.testclient import TestClient

from fridgesnap.config import Settings
from fridgesnap.controllers import recipes
from fridgesnap.main import create_app
from tests.utils.fakes import FakeClock, fake_generate


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path}/state.db",
        debug_secret="debug-secret",
        tmp_dir=str(tmp_path),
    )


@pytest.fixture
def stub_generation(monkeypatch):
    """Replace the external generation call with canned recipes."""
    calls = []

    def _stub(scan, tier, settings):
        calls.append((scan.scan_id, tier))
        return fake_generate(scan, tier, settings)

    monkeypatch.setattr(recipes, "generate_recipe", _stub)
    return calls


@pytest.fixture
def client(settings, clock, stub_generation):
    """Yields a TestClient with lifespan events."""
    with TestClient(create_app(settings, clock=clock)) as client:
        yield client
