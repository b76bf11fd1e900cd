"""
Wiring helpers - build the client components from a ClientConfig.

    config = load_config()
    tokens = FileTokenStore(config.token_file)
    manager = create_manager(config, tokens)
    feed = create_feed(config, manager, tokens, notifier=notifier)
"""

from __future__ import annotations

from typing import Optional

import httpx

from bizpulse.auth import TokenStore
from bizpulse.config import ClientConfig
from bizpulse.notifications.feed import NotificationFeed
from bizpulse.notifications.notifier import Notifier
from bizpulse.notifications.store import NotificationStore
from bizpulse.push.platform import PushPlatform
from bizpulse.push.service import PushService
from bizpulse.sockets.backoff import Backoff
from bizpulse.sockets.connection import ConnectionManager
from bizpulse.sockets.transport import Transport


def create_manager(
    config: ClientConfig,
    tokens: TokenStore,
    transport: Optional[Transport] = None,
) -> ConnectionManager:
    return ConnectionManager(
        config.ws_url,
        transport=transport,
        tokens=tokens,
        backoff=Backoff(
            base=config.backoff_base,
            cap=config.backoff_cap,
            jitter=config.backoff_jitter,
        ),
        max_reconnect_attempts=config.max_reconnect_attempts,
    )


def create_store(
    config: ClientConfig,
    tokens: TokenStore,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> NotificationStore:
    return NotificationStore(
        config.backend_url,
        tokens,
        company_id=config.company_id,
        target_type=config.target_type,
        sender_id=config.sender_id,
        sender_name=config.sender_name,
        timeout=config.http_timeout,
        transport=transport,
    )


def create_feed(
    config: ClientConfig,
    manager: ConnectionManager,
    tokens: TokenStore,
    *,
    notifier: Optional[Notifier] = None,
    store: Optional[NotificationStore] = None,
) -> NotificationFeed:
    """Feed persisting through a store built from ``config`` unless one is given."""
    return NotificationFeed(
        manager,
        store=store if store is not None else create_store(config, tokens),
        notifier=notifier,
        history_limit=config.history_limit,
        poll_interval=config.status_poll_interval,
        icon=config.icon,
    )


def create_push_service(
    config: ClientConfig,
    platform: PushPlatform,
    tokens: TokenStore,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> PushService:
    return PushService(
        platform,
        tokens,
        backend_url=config.backend_url,
        vapid_public_key=config.vapid_public_key,
        origin=config.origin,
        enabled=config.push_enabled,
        worker_script=config.worker_script,
        worker_scope=config.worker_scope,
        timeout=config.http_timeout,
        transport=transport,
    )
