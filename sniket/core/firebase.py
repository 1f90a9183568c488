import logging

import firebase_admin
from firebase_admin import credentials

from sniket.config import Settings

logger = logging.getLogger(__name__)

_APP_NAME = "sniket"


def initialize_firebase(settings: Settings) -> firebase_admin.App | None:
  """Initialize (or reuse) the Firebase Admin app used for push delivery."""
  if not settings.push_notifications_enabled:
    logger.info("Push notifications disabled. Firebase Admin SDK not initialized.")
    return None

  if not settings.firebase_project_id:
    logger.warning("Firebase Project ID not set. Firebase Admin SDK not initialized.")
    return None

  try:
    return firebase_admin.get_app(_APP_NAME)
  except ValueError:
    pass

  try:
    options = {"projectId": settings.firebase_project_id}
    if settings.firebase_service_account_json_path:
      cred = credentials.Certificate(settings.firebase_service_account_json_path)
      app = firebase_admin.initialize_app(cred, options, name=_APP_NAME)
    else:
      # Application Default Credentials
      app = firebase_admin.initialize_app(options=options, name=_APP_NAME)
    logger.info("Firebase Admin SDK initialized for project %s.", settings.firebase_project_id)
    return app
  except Exception as e:  # noqa: BLE001
    logger.error("Failed to initialize Firebase Admin SDK: %s", e)
    return None


def close_firebase(app: firebase_admin.App | None) -> None:
  """Release the Firebase app created at startup."""
  if app is None:
    return
  firebase_admin.delete_app(app)
