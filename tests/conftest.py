"""Shared fixtures: a file-backed SQLite database, a recording push sender and an app client."""

from __future__ import annotations

import os

os.environ.setdefault("SNIKET_ENV", "test")
os.environ.setdefault("SNIKET_PUSH_NOTIFICATIONS_ENABLED", "false")

from dataclasses import replace  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from sniket.config import Settings, get_settings  # noqa: E402
from sniket.core.database import build_session_factory, create_engine, init_models  # noqa: E402
from sniket.main import app  # noqa: E402
from sniket.notifications.contracts import PushMessage  # noqa: E402
from sniket.notifications.factory import build_notification_components  # noqa: E402
from sniket.payments.service import PaymentService  # noqa: E402

RAZORPAY_TEST_SECRET = "rzp_test_secret"


class RecordingPushSender:
  """Push sender double that records messages and fails chosen tokens."""

  enabled = True

  def __init__(self) -> None:
    self.sent: list[PushMessage] = []
    self.failures: dict[str, Exception] = {}

  def send(self, message: PushMessage) -> str:
    self.sent.append(message)
    error = self.failures.get(message.token)
    if error is not None:
      raise error
    return f"projects/sniket-test/messages/{len(self.sent)}"

  def tokens_sent(self) -> list[str]:
    return [message.token for message in self.sent]


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
async def engine(tmp_path):
  engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'sniket.db'}")
  await init_models(engine)
  yield engine
  await engine.dispose()


@pytest.fixture
def session_factory(engine):
  return build_session_factory(engine)


@pytest.fixture
def push_sender() -> RecordingPushSender:
  return RecordingPushSender()


@pytest.fixture
def settings() -> Settings:
  return replace(get_settings(), push_notifications_enabled=True, firebase_project_id="sniket-test", service_api_key=None, razorpay_key_secret=RAZORPAY_TEST_SECRET, app_base_url="https://app.sniket.test")


@pytest.fixture
async def components(settings, session_factory, push_sender):
  components = build_notification_components(settings, session_factory=session_factory, firebase_app=None, push_sender=push_sender)
  yield components
  await components.writer.drain()


@pytest.fixture
def payment_service(settings, session_factory, components) -> PaymentService:
  return PaymentService(session_factory=session_factory, writer=components.writer, razorpay_key_secret=settings.razorpay_key_secret, commission_rate=settings.commission_rate)


@pytest.fixture
def install_state(settings, session_factory, components, payment_service):
  """Put the test components on app.state the way the lifespan does."""

  def _install(**overrides):
    app.state.settings = overrides.get("settings", settings)
    app.state.session_factory = session_factory
    app.state.notifications = overrides.get("notifications", components)
    app.state.payments = overrides.get("payments", payment_service)
    return app

  yield _install
  app.state.settings = None
  app.state.session_factory = None
  app.state.notifications = None
  app.state.payments = None


@pytest.fixture
async def async_client(install_state):
  install_state()
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
