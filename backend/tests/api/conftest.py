"""API test fixtures — a Concord app over fake components + httpx client.

Invariants:
    - Every test gets a fresh app, engine and fake components
    - The lifespan is not run: the engine is built eagerly by create_app()

Design Decisions:
    - Settings passed explicitly: no .env or cached get_settings() leakage
    - build_client is a factory fixture so tests can vary settings
"""

import pytest
from httpx import ASGITransport, AsyncClient

from concord.config import Settings
from concord.core.rules import actions, sync
from concord.main import create_app

from tests.fakes import Accounts, Teams


@sync
def create_team(title, owner):
    return {
        "when": actions(("Requesting.request", {"path": "/Teams/create", "title": title, "owner": owner})),
        "then": actions(("Teams.create", {"title": title, "owner": owner})),
    }


@sync
def team_created(request, team):
    return {
        "when": actions(
            ("Requesting.request", {"path": "/Teams/create"}, {"request": request}),
            ("Teams.create", {}, {"team": team}),
        ),
        "then": actions(("Requesting.respond", {"request": request, "team": team})),
    }


@sync
def team_failed(request, error):
    return {
        "when": actions(
            ("Requesting.request", {"path": "/Teams/create"}, {"request": request}),
            ("Teams.create", {}, {"error": error}),
        ),
        "then": actions(("Requesting.respond", {"request": request, "error": error})),
    }


RULES = [create_team, team_created, team_failed]


@pytest.fixture
def build_client():
    async def _build(**overrides):
        overrides.setdefault("request_timeout_seconds", 0.2)
        overrides.setdefault("cors_origins", ["http://test"])
        settings = Settings(**overrides)
        concepts = {"Accounts": Accounts(), "Teams": Teams()}
        app = create_app(concepts, RULES, settings)
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        return client, app, concepts

    return _build


@pytest.fixture
async def client(build_client):
    client, _, _ = await build_client()
    yield client
    await client.aclose()
