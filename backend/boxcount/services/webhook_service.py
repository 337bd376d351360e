# Overview: Service-layer operations for webhook delivery; encapsulates business logic and database work.

"""
Webhook fan-out for submitted counts.

DELIVERY CONTRACT:
- One POST per line item, never one batched POST
- All POSTs of a dispatch run concurrently on a bounded thread pool
- The request that triggered the dispatch does not wait for them
- No retries: delivery is at-most-once, best-effort
- Failures are logged here and never reach the submitter

Config is read in the request (inside the app context) before any work is
handed to the pool, so worker threads only do HTTP.
"""
from __future__ import annotations

import atexit
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable
from urllib.parse import urlparse

import httpx
from flask import current_app

from ..extensions import db
from ..errors import InvalidInputError
from ..models import WebhookConfig, SINGLETON_ID, mask_secret
from .concurrency import get_or_create_singleton
from boxcount.time_utils import utcnow


# Webhook "tipo" values for each count kind
KIND_TIPOS = {
    "store": "loja",
    "transit": "transito",
}

# Sentinel for update_config: leave the stored token as it is
KEEP_TOKEN = object()


@dataclass(frozen=True)
class LineItem:
    asset_name: str
    quantity: int
    obs: str | None = None


@dataclass(frozen=True)
class DeliveryTarget:
    url: str
    token: str | None = None


def build_payload(email: str, store_name: str, kind: str, item: LineItem) -> dict:
    """Single-item payload: {"contagens": [ {...} ]}."""
    entry = {
        "email": email,
        "ativo_nome": item.asset_name,
        "quantidade": item.quantity,
        "loja_nome": store_name,
        "tipo": KIND_TIPOS[kind],
    }
    if item.obs:
        entry["obs"] = item.obs
    return {"contagens": [entry]}


class WebhookDispatcher:
    """
    Owns the thread pool and HTTP client used for webhook delivery.

    One instance per app, kept in app.extensions["webhook_dispatcher"].
    """

    def __init__(
        self,
        *,
        max_workers: int = 8,
        timeout: float = 8.0,
        transport: httpx.BaseTransport | None = None,
        logger: logging.Logger | None = None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="webhook"
        )
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def deliver(self, target: DeliveryTarget, payload: dict) -> bool:
        """Send one payload. Returns True on a 2xx answer; never raises."""
        headers = {"Content-Type": "application/json"}
        if target.token:
            headers["Authorization"] = f"Bearer {target.token}"
        try:
            response = self._client.post(target.url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            self.logger.warning("Webhook delivery to %s failed: %s", target.url, exc)
            return False
        if response.is_success:
            return True
        self.logger.warning(
            "Webhook delivery to %s rejected: HTTP %s", target.url, response.status_code
        )
        return False

    def submit(self, target: DeliveryTarget, payloads: Iterable[dict]) -> list[Future]:
        return [self._executor.submit(self.deliver, target, payload) for payload in payloads]

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        self._client.close()


def init_dispatcher(app) -> WebhookDispatcher:
    """Create the app's dispatcher once, at startup, and stop it at exit."""
    dispatcher = WebhookDispatcher(
        max_workers=app.config.get("WEBHOOK_MAX_WORKERS", 8),
        timeout=app.config.get("WEBHOOK_TIMEOUT_SECONDS", 8.0),
        logger=app.logger,
    )
    app.extensions["webhook_dispatcher"] = dispatcher
    atexit.register(dispatcher.shutdown, wait=False)
    return dispatcher


def get_dispatcher() -> WebhookDispatcher:
    return current_app.extensions["webhook_dispatcher"]


def get_config() -> WebhookConfig:
    return get_or_create_singleton(WebhookConfig, SINGLETON_ID, url="", enabled=False)


def validate_url(url: str) -> str:
    try:
        parsed = urlparse(url)
        parsed.port  # raises ValueError for a malformed port
    except ValueError:
        raise InvalidInputError("url must be an absolute http(s) URL")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidInputError("url must be an absolute http(s) URL")
    return url


def update_config(url, token=KEEP_TOKEN, enabled=False) -> WebhookConfig:
    """
    Replace the webhook settings. Caller commits.

    token is left untouched when omitted (KEEP_TOKEN) or when it equals the
    masked form shown by the config endpoint; None or "" clears it.
    """
    if url is not None and not isinstance(url, str):
        raise InvalidInputError("url must be a string")
    if token is not KEEP_TOKEN and token is not None and not isinstance(token, str):
        raise InvalidInputError("token must be a string")
    if not isinstance(enabled, bool):
        raise InvalidInputError("enabled must be a boolean")

    url = (url or "").strip()
    if enabled and not url:
        raise InvalidInputError("url is required to enable the webhook")
    if url:
        validate_url(url)

    config = get_config()
    config.url = url
    if token is not KEEP_TOKEN:
        token = (token or "").strip()
        if not (token and config.token and token == mask_secret(config.token)):
            config.token = token or None
    config.enabled = enabled
    config.updated_at = utcnow()
    db.session.flush()
    return config


def dispatch(email: str, store_name: str, kind: str, line_items: list[LineItem]) -> list[Future]:
    """
    Queue one POST per line item and return immediately.

    Returns the futures (empty when the webhook is disabled or has no URL);
    callers other than tests ignore them.
    """
    config = get_config()
    if not config.enabled or not config.url:
        return []

    target = DeliveryTarget(url=config.url, token=config.token)
    payloads = [build_payload(email, store_name, kind, item) for item in line_items]
    return get_dispatcher().submit(target, payloads)


def dispatch_records(records: list, kind: str) -> list[Future]:
    """
    Fan out a just-committed submission.

    This is the error boundary: anything that goes wrong is logged and an
    empty list is returned, so the submission response is never affected.
    """
    if not records:
        return []
    first = records[0]
    items = [LineItem(asset_name=r.asset_name, quantity=r.quantity) for r in records]
    try:
        return dispatch(first.submitter_email, first.store_name, kind, items)
    except Exception:
        current_app.logger.exception(
            "Failed to dispatch webhooks for store %s", first.store_id
        )
        return []
