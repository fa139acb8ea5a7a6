import base64
import json
import logging
import os
import threading
from typing import Mapping, Optional

import firebase_admin
from firebase_admin import credentials, messaging

from swoptrader.config import FIREBASE_CREDENTIAL_ENV_VARS

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "swoptrader-push"


class PushNotConfiguredError(RuntimeError):
    """No usable Firebase credential; nothing can be sent at all."""


def parse_service_account(raw: str) -> Optional[dict]:
    """Accepts the service account as raw JSON, or as base64-encoded JSON."""
    try:
        info = json.loads(raw)
    except ValueError:
        try:
            info = json.loads(base64.b64decode(raw.strip(), validate=True).decode("utf-8"))
        except ValueError:
            return None
    return info if isinstance(info, dict) else None


class PushTransport:
    """
    Capability object for Firebase Cloud Messaging. Built once at startup and
    handed to whoever sends pushes. The firebase app is created on first send
    and reused for the life of the process.
    """

    def __init__(self, credential: Optional[credentials.Base] = None, app_name: str = FIREBASE_APP_NAME):
        self._credential = credential
        self._app_name = app_name
        self._app = None
        self._lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return self._credential is not None

    def _get_app(self):
        if self._credential is None:
            raise PushNotConfiguredError("Push notifications are not configured")
        with self._lock:
            if self._app is None:
                try:
                    self._app = firebase_admin.get_app(self._app_name)
                except ValueError:
                    self._app = firebase_admin.initialize_app(self._credential, name=self._app_name)
                    logger.info("Firebase Admin SDK initialized for push delivery.")
        return self._app

    def send_multicast(self, message: messaging.MulticastMessage) -> messaging.BatchResponse:
        # Blocking HTTP call; callers run it in the thread pool.
        return messaging.send_each_for_multicast(message, app=self._get_app())


def load_push_transport(environ: Mapping[str, str] = os.environ) -> PushTransport:
    raw = next((environ[name] for name in FIREBASE_CREDENTIAL_ENV_VARS if environ.get(name)), None)
    if raw is None:
        logger.warning("Push notifications disabled: no Firebase service account in the environment.")
        return PushTransport()

    info = parse_service_account(raw)
    if info is None:
        logger.error("Push notifications disabled: Firebase service account is neither JSON nor base64 JSON.")
        return PushTransport()

    try:
        credential = credentials.Certificate(info)
    except ValueError as e:
        logger.error(f"Push notifications disabled: invalid Firebase service account: {e}")
        return PushTransport()
    return PushTransport(credential)
