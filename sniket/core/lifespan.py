import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sniket.config import get_database_settings, get_settings
from sniket.core.database import build_session_factory, create_engine, database_url, init_models
from sniket.core.firebase import close_firebase, initialize_firebase
from sniket.core.logging import initialize_logging
from sniket.notifications.factory import build_notification_components
from sniket.payments.service import PaymentService


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Build the service's clients once and hand them to routes through `app.state`."""
  settings = get_settings()
  logger = logging.getLogger("sniket.core.lifespan")

  try:
    initialize_logging(settings)
  except RuntimeError:
    logger.warning("Logging setup failed; continuing with default handlers.", exc_info=True)

  app.state.settings = settings
  app.state.session_factory = None
  app.state.notifications = None
  app.state.payments = None

  firebase_app = initialize_firebase(settings)
  url = database_url(get_database_settings())
  engine = None
  components = None
  if url is None:
    logger.warning("SNIKET_PG_DSN is not set; storage-backed routes will answer 503.")
  else:
    engine = create_engine(url, echo=settings.debug)
    # SQLite is only used locally; Postgres schema is owned by Alembic.
    if url.startswith("sqlite"):
      await init_models(engine)
    session_factory = build_session_factory(engine)
    components = build_notification_components(settings, session_factory=session_factory, firebase_app=firebase_app)
    app.state.session_factory = session_factory
    app.state.notifications = components
    app.state.payments = PaymentService(session_factory=session_factory, writer=components.writer, razorpay_key_secret=settings.razorpay_key_secret, commission_rate=settings.commission_rate)
    logger.info("Notification components ready push_enabled=%s", components.dispatcher.enabled)

  try:
    yield
  finally:
    if components is not None and components.writer.pending_pushes:
      logger.info("Waiting for %d pending push deliveries", components.writer.pending_pushes)
      await components.writer.drain()
    if engine is not None:
      await engine.dispose()
    close_firebase(firebase_app)
