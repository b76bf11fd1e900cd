"""
Push worker logic.

What the background worker does with a push message and with a click
on the resulting notification, as pure functions.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

from bizpulse.notifications.notifier import DisplayRequest, NotificationAction

logger = logging.getLogger("bizpulse.push.worker")

FALLBACK_BODY = "You have a new notification"
DEFAULT_TAG = "notification"
DEFAULT_APP_NAME = "BizPulse"
DEFAULT_ICON = "/images/logo/logo-icon.svg"

VIEW = "view"
DISMISS = "dismiss"

DEFAULT_ACTIONS = (
    NotificationAction(VIEW, "View"),
    NotificationAction(DISMISS, "Dismiss"),
)


def _decode(raw: Union[str, bytes, Mapping[str, Any], None]) -> Optional[Mapping[str, Any]]:
    if raw is None:
        return None
    if isinstance(raw, Mapping):
        return raw
    try:
        data = json.loads(raw)
    except (ValueError, TypeError) as exc:
        logger.warning("Undecodable push payload: %s", exc)
        return None
    if not isinstance(data, dict):
        logger.warning("Push payload is %s, not an object", type(data).__name__)
        return None
    return data


def build_push_display(
    raw: Union[str, bytes, Mapping[str, Any], None],
    *,
    app_name: str = DEFAULT_APP_NAME,
    icon: str = DEFAULT_ICON,
) -> DisplayRequest:
    """
    Turn a push message into a display request.

    Missing, undecodable or empty payloads produce the generic
    "You have a new notification" fallback.
    """
    payload = _decode(raw)
    if not payload:
        return DisplayRequest(title=app_name, body=FALLBACK_BODY, icon=icon, badge=icon)

    data = payload.get("data")
    return DisplayRequest(
        title=payload.get("title") or app_name,
        body=payload.get("message") or payload.get("body") or FALLBACK_BODY,
        icon=icon,
        badge=icon,
        image=payload.get("image") or None,
        tag=payload.get("tag") or DEFAULT_TAG,
        require_interaction=payload.get("priority") == "high",
        silent=False,
        data=data if isinstance(data, Mapping) else {},
        actions=DEFAULT_ACTIONS,
    )


@dataclass(frozen=True)
class ClickOutcome:
    """What a notification click does: nothing, focus a window or open one."""
    kind: str
    url: Optional[str] = None

    NONE = "none"
    FOCUS = "focus"
    OPEN = "open"


def resolve_click(
    action: Optional[str],
    data: Optional[Mapping[str, Any]],
    open_urls: Iterable[str] = (),
) -> ClickOutcome:
    """
    Decide the reaction to a notification click.

    ``dismiss`` does nothing. Otherwise the target is ``data["url"]``
    (default ``/``); an open window whose URL contains it is focused,
    else a new window is opened.
    """
    if action == DISMISS:
        return ClickOutcome(ClickOutcome.NONE)

    target = (data or {}).get("url") or "/"
    for url in open_urls:
        if target in url:
            return ClickOutcome(ClickOutcome.FOCUS, url)
    return ClickOutcome(ClickOutcome.OPEN, target)
