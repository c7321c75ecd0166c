"""API test fixtures — FastAPI test client over an in-memory database.

Invariants:
    - get_db overridden to use the test DB session factory
    - get_completion_client overridden with a MockAnthropicClient-backed client
    - db_manager points at the test engine so the readiness check can reach it
"""

import pytest
from httpx import ASGITransport, AsyncClient

from orbit.api.dependencies import get_completion_client
from orbit.infrastructure.database import DatabaseManager, get_db
import orbit.infrastructure.database as db_module
from orbit.main import app

from tests.services.mock_anthropic import make_completion_client


@pytest.fixture
def provider_responses():
    """Responses the mocked provider returns, in order. Tests append to it."""
    return []


@pytest.fixture
def completion_client(provider_responses):
    return make_completion_client(provider_responses)


@pytest.fixture
async def client(test_engine, test_session_factory, completion_client):
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_completion_client] = lambda: completion_client

    original_manager = db_module.db_manager
    db_module.db_manager = DatabaseManager(test_engine)

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager
