import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import httpx
import jwt
import pytest

from src.access.interfaces import actor_from_token
from src.config import NotificationKind, Role, settings
from src.core import AuthenticationException
from src.infrastructure.notifications import CircuitBreaker, CircuitState, Notification, WebhookNotifier
from src.infrastructure.tasks import BackgroundDispatcher
from src.sla.infrastructure import SLADefaultsManager, SLAScheduler


# ========== Background dispatcher ==========

@pytest.mark.asyncio
async def test_failing_job_does_not_stop_workers(dispatcher):
    done = []

    async def boom():
        raise RuntimeError("boom")

    async def ok():
        done.append(True)

    assert dispatcher.submit(boom, name="boom")
    assert dispatcher.submit(ok, name="ok")
    await dispatcher.join()

    assert done == [True]
    assert dispatcher.is_running


@pytest.mark.asyncio
async def test_stopped_dispatcher_drops_jobs():
    dispatcher = BackgroundDispatcher(workers=1)

    async def job():
        pass

    assert dispatcher.submit(job, name="never") is False


@pytest.mark.asyncio
async def test_full_queue_drops_jobs():
    dispatcher = BackgroundDispatcher(workers=1, queue_size=1)
    release = asyncio.Event()

    async def blocker():
        await release.wait()

    await dispatcher.start()
    try:
        assert dispatcher.submit(blocker, name="running")
        await asyncio.sleep(0.01)
        assert dispatcher.submit(blocker, name="queued")
        assert dispatcher.submit(blocker, name="overflow") is False
    finally:
        release.set()
        await dispatcher.stop(drain=True, timeout=5)


# ========== Scheduler ==========

@pytest.mark.asyncio
@pytest.mark.parametrize("interval", [0, -5, 14])
async def test_scheduler_disabled_below_floor(interval):
    scheduler = SLAScheduler(interval_seconds=interval)

    async def job():
        return 0

    assert await scheduler.start(job) is False
    assert scheduler.is_running is False


@pytest.mark.asyncio
async def test_scheduler_runs_sweep_job():
    scheduler = SLAScheduler(interval_seconds=60)

    async def job():
        return 0

    assert await scheduler.start(job) is True
    assert scheduler.is_running
    assert await scheduler.start(job) is True

    await scheduler.stop()
    assert scheduler.is_running is False


# ========== SLA defaults file ==========

def test_defaults_loaded_from_yaml(tmp_path):
    path = tmp_path / "sla_defaults.yaml"
    path.write_text(
        "default_thresholds:\n"
        "  sla_low_hours: 96\n"
        "  sla_medium_hours: 36\n"
        "  sla_high_hours: 6\n"
        "at_risk_window_hours: 2\n"
    )

    manager = SLADefaultsManager()
    config = manager.load(path)

    assert config.default_thresholds.sla_high_hours == 6
    assert manager.config.at_risk_window_hours == 2


def test_missing_defaults_file_uses_builtin(tmp_path):
    manager = SLADefaultsManager()
    config = manager.load(tmp_path / "absent.yaml")
    assert config.default_thresholds.sla_medium_hours == 24


def test_broken_reload_keeps_previous_defaults(tmp_path):
    path = tmp_path / "sla_defaults.yaml"
    path.write_text("default_thresholds:\n  sla_low_hours: 72\n  sla_medium_hours: 24\n  sla_high_hours: 2\n")
    manager = SLADefaultsManager()
    manager.load(path)

    path.write_text("default_thresholds:\n  sla_low_hours: 72\n  sla_medium_hours: 24\n  sla_high_hours: 0\n")

    assert manager.reload() is False
    assert manager.config.default_thresholds.sla_high_hours == 2


def test_reload_picks_up_changes(tmp_path):
    path = tmp_path / "sla_defaults.yaml"
    path.write_text("at_risk_window_hours: 4\n")
    manager = SLADefaultsManager()
    manager.load(path)

    path.write_text("at_risk_window_hours: 8\n")

    assert manager.reload() is True
    assert manager.config.at_risk_window_hours == 8


# ========== Notification channel ==========

def breach_notice() -> Notification:
    return Notification(
        kind=NotificationKind.SLA_BREACHED,
        recipient_email="owner@acme.test",
        recipient_name="Owner",
        fields={"ticket_id": str(uuid4()), "ticket_title": "Server down"}
    )


@pytest.mark.asyncio
async def test_webhook_without_url_skips():
    notifier = WebhookNotifier(webhook_url="")
    assert await notifier.send(breach_notice()) is False


@pytest.mark.asyncio
async def test_webhook_posts_payload():
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(202)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    notifier = WebhookNotifier(webhook_url="https://hooks.test/notify", http_client=client)

    notice = breach_notice()
    assert await notifier.send(notice) is True
    await notifier.close()

    [request] = received
    assert request.url == "https://hooks.test/notify"
    assert b'"kind":"sla_breached"' in request.content.replace(b" ", b"")
    assert notice.subject == "SLA breached: Server down"


@pytest.mark.asyncio
async def test_webhook_failure_reports_false_and_trips_breaker():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    notifier = WebhookNotifier(
        webhook_url="https://hooks.test/notify",
        max_retries=1,
        circuit_breaker=breaker,
        http_client=client
    )

    assert await notifier.send(breach_notice()) is False
    assert breaker.state == CircuitState.OPEN
    # Rejected without a request while open
    assert await notifier.send(breach_notice()) is False
    await notifier.close()


def test_breaker_half_opens_after_timeout():
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
    breaker.record_failure()
    assert breaker.state == CircuitState.HALF_OPEN
    breaker.record_success()
    assert breaker.state == CircuitState.CLOSED


# ========== Bearer tokens ==========

def token(**claims) -> str:
    base = {"exp": datetime.now(timezone.utc) + timedelta(minutes=5)}
    base.update(claims)
    return jwt.encode(base, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def test_token_becomes_actor():
    user_id, org_id = uuid4(), uuid4()
    actor = actor_from_token(token(sub=str(user_id), role="AGENT", org_id=str(org_id)))

    assert actor.id == user_id
    assert actor.role == Role.AGENT
    assert actor.organization_id == org_id


def test_super_admin_token_without_org():
    actor = actor_from_token(token(sub=str(uuid4()), role="SUPER_ADMIN", org_id=None))
    assert actor.organization_id is None


@pytest.mark.parametrize(
    "claims",
    [
        {"role": "USER", "org_id": "x"},
        {"sub": "not-a-uuid", "role": "USER"},
        {"sub": str(uuid4()), "role": "OWNER", "org_id": str(uuid4())},
        {"sub": str(uuid4()), "role": "ADMIN"},
    ],
)
def test_bad_claims_are_rejected(claims):
    with pytest.raises(AuthenticationException):
        actor_from_token(token(**claims))


def test_wrong_signature_is_rejected():
    forged = jwt.encode(
        {"sub": str(uuid4()), "role": "SUPER_ADMIN"}, "some-other-secret-key-for-forged-tokens", algorithm="HS256"
    )
    with pytest.raises(AuthenticationException):
        actor_from_token(forged)
