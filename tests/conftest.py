import os

# Must be set before the app (and its engine) is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import asyncio
import copy
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, List, Optional
from uuid import UUID

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from audience_api.main import app
from audience_api.database import get_db, Base
from audience_api.approvals.service import ApprovalEngine
from audience_api.drafts.service import DraftStore
from audience_api.generation.base import Generator
from audience_api.generation.dependencies import get_generator
from audience_api.projects.models import Project, Segment
from audience_api.registry import Scope, stage_of
from audience_api.translation.dependencies import get_translation_provider
from audience_api.translation.providers import TranslationProvider
from audience_api.shared.exceptions import ExternalServiceError

# Import all models so create_all sees every table
from audience_api.audit.models import AuditEvent  # noqa: F401
from audience_api.translation.models import TranslationCacheEntry  # noqa: F401


DEFAULT_ITEMS: Dict[str, List[Dict[str, Any]]] = {
    "segments": [{"name": "Busy parents"}, {"name": "Remote students"}],
    "jobs": [{"job": "Plan weekly meals"}, {"job": "Save time on groceries"}],
    "preferences": [{"name": "Organic food"}],
    "difficulties": [{"name": "No time to cook"}],
    "triggers": [
        {"signal": "New school year", "messaging_angle": "Start the year calm"},
        {"signal": "Moving house"},
    ],
    "pains": [{"name": "Dinner chaos"}, {"name": "Food waste"}, {"name": "Picky eaters"}],
    "pains-ranking": [
        {"name": "Dinner chaos", "impact_score": 9, "is_top_pain": True},
        {"name": "Food waste", "impact_score": 5, "is_top_pain": False},
    ],
    "canvas": [{"pain_name": "Dinner chaos", "emotional_aspects": ["guilt"]}],
}


class FakeGenerator(Generator):
    """Scripted generator. ``on_regenerate`` runs while the call is in flight."""

    def __init__(self):
        self.items: Dict[str, List[Dict[str, Any]]] = {k: list(v) for k, v in DEFAULT_ITEMS.items()}
        self.field_value: Any = "Regenerated value"
        self.fail: Optional[Exception] = None
        self.on_regenerate: Optional[Callable[[], Awaitable[None]]] = None
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, stage, scope, context):
        self.calls.append({"stage": stage.id.value, "scope": scope.describe(), "context": context})
        if self.fail is not None:
            raise self.fail
        return copy.deepcopy(self.items.get(stage.id.value, []))

    async def regenerate_field(self, field_name, current_value, context, stage=None):
        self.calls.append({"field": field_name, "current_value": current_value, "context": context})
        if self.on_regenerate is not None:
            await self.on_regenerate()
        if self.fail is not None:
            raise self.fail
        return self.field_value


class FakeTranslationProvider(TranslationProvider):
    name = "fake"

    def __init__(self):
        self.calls: List[List[str]] = []
        self.fail = False
        self.delay = 0.0
        self.drop_last = False

    async def translate_text(self, strings, language):
        self.calls.append(list(strings))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ExternalServiceError("translator down")
        translated = [f"[{language}] {s}" for s in strings]
        return translated[:-1] if self.drop_last else translated


@dataclass
class ProjectIds:
    project_id: UUID
    segment_ids: List[UUID] = field(default_factory=list)

    def project_scope(self) -> Scope:
        return Scope(project_id=self.project_id)

    def segment_scope(self, index: int = 0) -> Scope:
        return Scope(project_id=self.project_id, segment_id=self.segment_ids[index])

    def pain_scope(self, pain_id: UUID, index: int = 0) -> Scope:
        return Scope(project_id=self.project_id, segment_id=self.segment_ids[index], pain_id=pain_id)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database and session for each test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    TestingSessionLocal = sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    async with TestingSessionLocal() as session:
        yield session

    await test_engine.dispose()


@pytest.fixture
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def fake_translator() -> FakeTranslationProvider:
    return FakeTranslationProvider()


@pytest_asyncio.fixture(scope="function")
async def async_client(
    db_session: AsyncSession,
    fake_generator: FakeGenerator,
    fake_translator: FakeTranslationProvider,
) -> AsyncGenerator[AsyncClient, None]:
    """Client for testing API endpoints."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_generator] = lambda: fake_generator
    app.dependency_overrides[get_translation_provider] = lambda: fake_translator

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def project_ids(db_session: AsyncSession) -> ProjectIds:
    """A project with two segments. Ids only, so tests never touch expired instances."""
    project = Project(
        name="Meal kit",
        brand_description="Weeknight dinners made easy",
        product_description="Pre-portioned meal kits delivered weekly",
        native_language="en",
    )
    db_session.add(project)
    await db_session.flush()
    segments = [
        Segment(project_id=project.id, name="Parents", order_index=0),
        Segment(project_id=project.id, name="Students", order_index=1),
    ]
    db_session.add_all(segments)
    await db_session.commit()
    return ProjectIds(project_id=project.id, segment_ids=[s.id for s in segments])


@pytest.fixture
def unlock_stage(db_session: AsyncSession):
    """Approve the default drafts of every missing upstream so the stage opens for ``scope``."""
    async def _unlock(stage: str, scope: Scope):
        engine = ApprovalEngine(db_session)
        for upstream_id in stage_of(stage).upstream:
            upstream = stage_of(upstream_id)
            narrowed = scope.narrow_to(upstream.scope_shape)
            if await engine.is_approved(upstream, narrowed):
                continue
            await _unlock(upstream.id.value, narrowed)
            rows = await DraftStore(db_session).bulk_insert(upstream, narrowed, DEFAULT_ITEMS[upstream.id.value])
            await engine.approve(upstream, narrowed, [row.id for row in rows])

    return _unlock


@pytest.fixture
def seed_approved(db_session: AsyncSession, unlock_stage):
    """Store drafts for a stage and approve all of them, upstream chain included."""
    async def _seed(stage: str, scope: Scope, items: Optional[List[Dict[str, Any]]] = None):
        await unlock_stage(stage, scope)
        rows = await DraftStore(db_session).bulk_insert(stage, scope, items or DEFAULT_ITEMS[stage])
        row_ids = [row.id for row in rows]
        await ApprovalEngine(db_session).approve(stage, scope, row_ids)
        return row_ids

    return _seed
