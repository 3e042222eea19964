"""Service test fixtures — fake components and an engine builder.

Invariants:
    - Every test gets fresh fake components and a fresh InvocationLog
    - Faults go to a RecordingSink so tests can assert on them

Design Decisions:
    - make_engine is a factory fixture: each test declares its own rules
"""

import pytest

from concord.services.concept_registry import ConceptRegistry
from concord.services.sync_engine import SyncEngine

from tests.fakes import (
    Accounts, Auth, Counter, Exploding, Mailer, RecordingSink, Slow, Teams,
)


@pytest.fixture
def components():
    return {
        "Accounts": Accounts(),
        "Teams": Teams(),
        "Mailer": Mailer(),
        "Auth": Auth(),
        "Counter": Counter(),
        "Exploding": Exploding(),
        "Slow": Slow(),
    }


@pytest.fixture
def registry(components):
    registry = ConceptRegistry()
    for name, concept in components.items():
        registry.register(name, concept)
    return registry


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def make_engine(registry, sink):
    def _make(*rules, **options):
        options.setdefault("sink", sink)
        engine = SyncEngine(registry, rules, **options)
        engine.validate()
        return engine
    return _make
