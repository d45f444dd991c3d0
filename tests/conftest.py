import pytest
import pytest_asyncio
from unittest.mock import AsyncMock
from httpx import AsyncClient, ASGITransport
from deskflow.api.main import app
from deskflow.api.deps import build_flow_engine, get_engine, get_gateway
from deskflow.core.settings import AppSettings, EngineSettings, ContextSettings, RecordSettings
from deskflow.db.models import Base
from deskflow.db.session import build_engine, build_sessionmaker

# Rules and static catalog content only: no LLM is reachable in tests
@pytest.fixture
def test_settings():
    return AppSettings(
        engine=EngineSettings(DESKFLOW_AI_ENABLED=False),
        context=ContextSettings(DESKFLOW_CONTEXT_BACKEND="memory"),
        records=RecordSettings(DESKFLOW_RECORD_SINK="simulated", DESKFLOW_KNOWN_ISSUE_BACKEND="memory"),
    )

@pytest.fixture
def flow_engine(test_settings):
    return build_flow_engine(test_settings, gateway=None)

@pytest_asyncio.fixture(scope="function")
async def async_client(flow_engine):
    app.dependency_overrides[get_engine] = lambda: flow_engine
    app.dependency_overrides[get_gateway] = lambda: None
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides = {}

# File-backed SQLite so every session sees the same database
@pytest_asyncio.fixture
async def session_factory(tmp_path):
    db_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'deskflow_test.db'}")
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_sessionmaker(db_engine)
    await db_engine.dispose()

@pytest.fixture
def mock_gateway():
    gateway = AsyncMock()
    gateway.classify.return_value = None
    gateway.extract_entities.return_value = {}
    gateway.generate.return_value = None
    return gateway

@pytest.fixture
def ai_flow_engine(mock_gateway):
    config = AppSettings(
        engine=EngineSettings(DESKFLOW_AI_ENABLED=True, DESKFLOW_HISTORY_WINDOW=2),
        context=ContextSettings(DESKFLOW_CONTEXT_BACKEND="memory"),
        records=RecordSettings(DESKFLOW_RECORD_SINK="simulated", DESKFLOW_KNOWN_ISSUE_BACKEND="memory"),
    )
    return build_flow_engine(config, gateway=mock_gateway)
