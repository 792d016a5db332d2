"""Test configuration."""
import os
import threading
from collections.abc import AsyncIterator, Callable, Iterator
from pathlib import Path
from types import SimpleNamespace
from typing import Any
from uuid import uuid4

from alembic import command
from alembic.config import Config
import httpx
import pytest
import stripe
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

# --- Default env config
os.environ.setdefault("DATABASE_URL", "sqlite:///./giftsplit_test.db")
os.environ.setdefault("GIFTSPLIT_ENV", "dev")
os.environ.setdefault("ORGANIZER_API_KEY", "test-organizer-key")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("APP_BASE_URL", "http://testserver.local")
os.environ.setdefault("PROMETHEUS_ENABLED", "false")
os.environ.setdefault("LOCK_ASSIGN_WAIT_SECONDS", "0")
os.environ["RESEND_API_KEY"] = ""

from giftsplit.main import app  # noqa: E402
from giftsplit.db import get_db  # noqa: E402
from giftsplit.models import Base  # noqa: E402

DB_PATH = Path("./giftsplit_test.db")
ROOT = Path(__file__).resolve().parents[1]


def _run_migrations() -> None:
    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "alembic"))
    cfg.set_main_option("sqlalchemy.url", os.environ["DATABASE_URL"])
    command.upgrade(cfg, "head")


# --- (1) Fresh database file per test session
if DB_PATH.exists():
    DB_PATH.unlink()

engine = create_engine(
    os.environ["DATABASE_URL"],
    connect_args={"check_same_thread": False},
    future=True,
)
TestingSessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
    expire_on_commit=False,
    join_transaction_mode="create_savepoint",
)

# --- (2) Schema comes from Alembic only
_run_migrations()


@pytest.fixture
def db_session() -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture(autouse=True)
def override_db_dependency(db_session: Session) -> Iterator[None]:
    def _get_db() -> Iterator[Session]:
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    yield
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


@pytest.fixture
def organizer_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {os.environ['ORGANIZER_API_KEY']}"}


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class FakeStripe:
    """Stands in for ``StripeClient`` in the checkout orchestrator."""

    def __init__(self) -> None:
        self.sessions: dict[str, SimpleNamespace] = {}
        self.created: list[dict[str, Any]] = []
        self.expired: list[str] = []
        self.fail_create = False
        self.omit_url = False

    def __call__(self, settings: Any) -> "FakeStripe":
        return self

    def create_checkout_session(self, *, email, amount_cents, currency, gift_name, metadata=None):
        if self.fail_create:
            raise stripe.APIConnectionError("Stripe is unreachable")
        session_id = f"cs_test_{uuid4().hex}"
        url = None if self.omit_url else f"https://checkout.stripe.test/pay/{session_id}"
        session = SimpleNamespace(id=session_id, url=url)
        self.sessions[session_id] = session
        self.created.append(
            {
                "id": session_id,
                "email": email,
                "amount_cents": amount_cents,
                "currency": currency,
                "gift_name": gift_name,
                "metadata": dict(metadata or {}),
            }
        )
        return session

    def retrieve_checkout_session(self, session_id: str):
        return self.sessions.get(session_id) or SimpleNamespace(id=session_id, url=None)

    def expire_checkout_session(self, session_id: str):
        self.expired.append(session_id)
        return SimpleNamespace(id=session_id, url=None)


class Outbox:
    """Records payment emails instead of delivering them."""

    def __init__(self) -> None:
        self.messages: list[dict[str, str]] = []
        self.fail = False

    def send(self, recipient: str, subject: str, html: str) -> None:
        if self.fail:
            raise httpx.ConnectError("mail provider down")
        self.messages.append({"to": recipient, "subject": subject, "html": html})


@pytest.fixture
def fake_stripe(monkeypatch) -> FakeStripe:
    fake = FakeStripe()
    monkeypatch.setattr("giftsplit.services.checkout.StripeClient", fake)
    return fake


@pytest.fixture
def outbox(monkeypatch) -> Outbox:
    box = Outbox()
    monkeypatch.setattr("giftsplit.services.checkout.get_notifier", lambda settings=None: box)
    return box


@pytest.fixture
def make_gift(client, organizer_headers):
    """Create a gift through the API and optionally invite people."""

    async def _make(
        *,
        total: int = 1000,
        emails: list[str] | None = None,
        name: str = "Farewell gift",
        currency: str = "usd",
    ) -> dict[str, Any]:
        response = await client.post(
            "/gifts",
            json={"name": name, "total_amount_cents": total, "currency": currency},
            headers=organizer_headers,
        )
        assert response.status_code == 201, response.text
        created = response.json()
        if emails:
            added = await client.post(
                f"/gifts/{created['gift']['id']}/invitees",
                json={"emails": emails},
                headers=organizer_headers,
            )
            assert added.status_code == 201, added.text
        return created

    return _make


@pytest.fixture
def file_sessionmaker(tmp_path) -> Iterator[sessionmaker[Session]]:
    """Sessions on a private SQLite file, committed for real.

    The shared test database stays inside one rolled-back transaction, so
    tests that race separate connections need their own file.
    """

    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'concurrent.db'}",
        connect_args={"check_same_thread": False, "timeout": 10},
        future=True,
    )
    Base.metadata.create_all(bind=file_engine)
    factory = sessionmaker(bind=file_engine, autoflush=False, expire_on_commit=False, future=True)
    try:
        yield factory
    finally:
        file_engine.dispose()


@pytest.fixture
def run_concurrently(file_sessionmaker):
    """Run ``fn(session)`` in parallel threads released by one barrier."""

    def _run(fn: Callable[[Session], Any], *, workers: int = 2) -> tuple[list[Any], list[BaseException]]:
        barrier = threading.Barrier(workers)
        results: list[Any] = []
        errors: list[BaseException] = []

        def _worker() -> None:
            with file_sessionmaker() as session:
                barrier.wait()
                try:
                    results.append(fn(session))
                except Exception as exc:  # noqa: BLE001
                    errors.append(exc)

        threads = [threading.Thread(target=_worker) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)
        return results, errors

    return _run
