import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from mathtrainer.core.config import get_settings
from mathtrainer.core.security import create_session_token
from mathtrainer.db.base import Base
from mathtrainer.db.session import get_db
from mathtrainer.services import recording

LEARNER = "learner-1"


@pytest.fixture(autouse=True)
def fresh_locks(monkeypatch):
    # asyncio locks bind to the loop they first wait on; each test gets its own loop
    monkeypatch.setattr(recording, "trainer_locks", recording.KeyedLocks())
    monkeypatch.setattr(recording, "learner_locks", recording.KeyedLocks())


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    from mathtrainer.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_cookies():
    return {get_settings().auth_cookie_name: create_session_token(LEARNER)}
