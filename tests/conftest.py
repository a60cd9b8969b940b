import os
from datetime import date, timedelta
from typing import Any, AsyncGenerator, Dict

# Settings are read at import time; point them at SQLite before the app is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.auth.security import create_access_token
from app.db.session import Base, get_db
from app.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; also overrides the FastAPI dependency."""
    # StaticPool: every connection shares the one in-memory database
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture()
def auth_headers():
    """Factory: Authorization header for a bearer token with the given role and permissions."""

    def _headers(role: str = "ADMIN", permissions: Dict[str, Dict[str, bool]] = None, sub: str = "42") -> Dict[str, str]:
        token = create_access_token(subject={"sub": sub, "role": role, "permissions": permissions or {}})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def admin_headers(auth_headers) -> Dict[str, str]:
    return auth_headers()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def class_payload() -> Dict[str, Any]:
    """A valid create payload starting next week."""
    start = date.today() + timedelta(days=7)
    return {
        "client_id": 11,
        "site_id": "11_1",
        "class_address_line": "100 Pharma Rd, Durban, 4001",
        "class_type": "employed",
        "class_subject": "Basic Computer Skills",
        "class_code": "EMP-011-0001",
        "class_duration": 30,
        "original_start_date": start.isoformat(),
        "seta_funded": "yes",
        "seta": "HWSETA",
        "exam_class": "no",
        "class_agent": 1,
        "project_supervisor_id": 2,
        "learner_ids": "[1,2,3]",
        "backup_agent_ids": [4, 5],
        "schedule_data": {"days": ["Monday", "Wednesday"], "start_time": "09:00", "end_time": "16:00"},
        "class_notes_data": [{"type": "Venue Confirmed", "note": "Room 3 booked", "date": start.isoformat()}],
    }
