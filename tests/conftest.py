"""
Test configuration and fixtures.

Provides:
- A fresh SQLite database per test (file in tmp_path)
- Frozen clock, recording notifier, running background dispatcher
- Two seeded tenants with one user per role
- Services wired the way the API wires them
- JWT token minting and an HTTPX AsyncClient for API tests
"""

import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, List, Optional

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-helpdesk-tests")

import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from src.access.domain import Actor
from src.config import Role, settings
from src.core import Clock
from src.infrastructure.database import (
    close_database,
    create_tables,
    get_session_context,
    init_database,
)
from src.infrastructure.notifications import INotifier, Notification
from src.infrastructure.tasks import BackgroundDispatcher
from src.organizations.application import OrganizationService, UserService
from src.organizations.infrastructure import (
    OrganizationModel,
    SQLAlchemyOrganizationRepository,
    SQLAlchemyUserRepository,
    UserModel,
)
from src.sla.application import ISLADefaultsProvider, SLABreachSweeper
from src.sla.domain import SLADefaultsConfig
from src.sla.infrastructure import breach_repository_scope
from src.tickets.application import DashboardService, TicketService
from src.tickets.infrastructure import (
    ActivityLogWriter,
    SQLAlchemyActivityLogRepository,
    SQLAlchemyCommentRepository,
    SQLAlchemyTicketRepository,
    TicketNotificationPublisher,
)


# =============================================================================
# Test doubles
# =============================================================================

class FrozenClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, now: datetime):
        self._now = now

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now

    def advance(self, **delta) -> None:
        self._now = self._now + timedelta(**delta)


class RecordingNotifier(INotifier):
    """Keeps every notification instead of delivering it."""

    def __init__(self, fail: bool = False):
        self.sent: List[Notification] = []
        self.fail = fail

    async def send(self, notification: Notification) -> bool:
        if self.fail:
            raise RuntimeError("notification channel down")
        self.sent.append(notification)
        return True

    def of_kind(self, kind) -> List[Notification]:
        return [n for n in self.sent if n.kind == kind]


class StaticDefaults(ISLADefaultsProvider):
    def __init__(self, config: Optional[SLADefaultsConfig] = None):
        self._config = config or SLADefaultsConfig()

    @property
    def config(self) -> SLADefaultsConfig:
        return self._config


# =============================================================================
# Infrastructure fixtures
# =============================================================================

NOON = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOON)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def sla_defaults() -> StaticDefaults:
    return StaticDefaults()


@pytest.fixture
async def database(tmp_path) -> AsyncGenerator[None, None]:
    init_database(f"sqlite+aiosqlite:///{tmp_path / 'helpdesk.db'}")
    await create_tables()
    yield
    await close_database()


@pytest.fixture
async def session(database):
    async with get_session_context() as session:
        yield session


@pytest.fixture
async def dispatcher() -> AsyncGenerator[BackgroundDispatcher, None]:
    dispatcher = BackgroundDispatcher(workers=2, queue_size=100)
    await dispatcher.start()
    yield dispatcher
    await dispatcher.stop(drain=True, timeout=5)


@pytest.fixture
def activity_log(dispatcher, clock) -> ActivityLogWriter:
    return ActivityLogWriter(dispatcher, clock=clock)


# =============================================================================
# Seed data
# =============================================================================

@dataclass
class Tenant:
    organization: OrganizationModel
    admin: UserModel
    agent: UserModel
    user: UserModel
    other_user: UserModel


@dataclass
class World:
    acme: Tenant
    globex: Tenant
    super_admin: UserModel


def actor_for(user: UserModel) -> Actor:
    return Actor(id=user.id, role=Role(user.role), organization_id=user.organization_id)


async def _seed_tenant(session, name: str, slug: str) -> Tenant:
    org = OrganizationModel(
        name=name, sla_low_hours=72, sla_medium_hours=24, sla_high_hours=4,
        created_at=NOON - timedelta(days=30)
    )
    session.add(org)
    await session.flush()

    def user(label: str, role: Role) -> UserModel:
        model = UserModel(
            name=f"{name} {label}",
            email=f"{label.lower().replace(' ', '.')}@{slug}.test",
            password_hash="hashed",
            role=role.value,
            organization_id=org.id,
            created_at=NOON - timedelta(days=30)
        )
        session.add(model)
        return model

    tenant = Tenant(
        organization=org,
        admin=user("Admin", Role.ADMIN),
        agent=user("Agent", Role.AGENT),
        user=user("User", Role.USER),
        other_user=user("Other User", Role.USER),
    )
    await session.flush()
    return tenant


@pytest.fixture
async def world(session) -> World:
    acme = await _seed_tenant(session, "Acme", "acme")
    globex = await _seed_tenant(session, "Globex", "globex")
    root = UserModel(
        name="Root", email="root@helpdesk.test", password_hash="hashed",
        role=Role.SUPER_ADMIN.value, organization_id=None,
        created_at=NOON - timedelta(days=60)
    )
    session.add(root)
    await session.commit()
    return World(acme=acme, globex=globex, super_admin=root)


# =============================================================================
# Services
# =============================================================================

@pytest.fixture
def ticket_service(session, activity_log, notifier, dispatcher, clock) -> TicketService:
    return TicketService(
        tickets=SQLAlchemyTicketRepository(session),
        comments=SQLAlchemyCommentRepository(session),
        activity_reader=SQLAlchemyActivityLogRepository(session),
        users=SQLAlchemyUserRepository(session),
        organizations=SQLAlchemyOrganizationRepository(session),
        activity_log=activity_log,
        notifier=TicketNotificationPublisher(notifier, dispatcher, stagger_seconds=0),
        clock=clock
    )


@pytest.fixture
def dashboard_service(session, sla_defaults, clock) -> DashboardService:
    return DashboardService(
        tickets=SQLAlchemyTicketRepository(session),
        users=SQLAlchemyUserRepository(session),
        sla_defaults=sla_defaults,
        clock=clock
    )


@pytest.fixture
def organization_service(session, sla_defaults) -> OrganizationService:
    return OrganizationService(
        organizations=SQLAlchemyOrganizationRepository(session),
        users=SQLAlchemyUserRepository(session),
        sla_defaults=sla_defaults
    )


@pytest.fixture
def user_service(session) -> UserService:
    return UserService(
        users=SQLAlchemyUserRepository(session),
        organizations=SQLAlchemyOrganizationRepository(session)
    )


@pytest.fixture
def sweeper(notifier, activity_log, dispatcher, clock) -> SLABreachSweeper:
    return SLABreachSweeper(
        repository_scope=breach_repository_scope,
        notifier=notifier,
        activity_log=activity_log,
        dispatcher=dispatcher,
        clock=clock
    )


# =============================================================================
# API fixtures
# =============================================================================

def make_token(user: UserModel, **overrides) -> str:
    claims = {
        "sub": str(user.id),
        "role": user.role,
        "org_id": str(user.organization_id) if user.organization_id else None,
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    claims.update(overrides)
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def auth(user: UserModel) -> dict:
    return {"Authorization": f"Bearer {make_token(user)}"}


@pytest.fixture
async def client(database, dispatcher, notifier, sla_defaults, clock) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient against the app, wired to the test doubles."""
    from src.main import app, wire_services

    wire_services(
        app,
        dispatcher=dispatcher,
        notifier=notifier,
        sla_defaults=sla_defaults,
        clock=clock
    )
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
