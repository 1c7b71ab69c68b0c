"""
Shared fixtures for the Street Art CTF test suite.
"""

from datetime import datetime

import pytest

from streetart.api.database import create_session_factory
from streetart.api.documents import DocumentStore
from streetart.client.storage import LocalStorage
from streetart.engine.actions import join_team
from streetart.engine.definitions import STATUS_ACTIVE, load_catalog
from streetart.engine.reducer import apply_action
from streetart.engine.state import PlayerProfile
from streetart.engine.utils import initialize_game_state

# Local noon: no early-bird / night-owl flags
NOW = datetime(2026, 6, 15, 12, 0, 0).timestamp()


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def catalog():
    return load_catalog("prague")


@pytest.fixture
def active_art_ids(catalog) -> list[str]:
    return [aid for aid, a in catalog.art.items() if a.status == STATUS_ACTIVE]


@pytest.fixture
def ghost_art_ids(catalog) -> list[str]:
    return [aid for aid, a in catalog.art.items() if a.status != STATUS_ACTIVE]


@pytest.fixture
def state(catalog):
    """Fresh state for player p1, no team yet."""
    return initialize_game_state(catalog, player=PlayerProfile(id="p1", name="Tester"))


@pytest.fixture
def red_state(state, catalog):
    """Fresh state for player p1 on team red."""
    new_state, _ = apply_action(state, join_team("p1", "red"), catalog, now=NOW)
    return new_state


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_factory():
    """Tables in a private in-memory SQLite database."""
    return create_session_factory("sqlite://")


@pytest.fixture
def store(session_factory) -> DocumentStore:
    return DocumentStore(session_factory)


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(str(tmp_path / "storage.json"))
