"""
Notifier - OS-level notification display port.

A Notifier reports whether system notifications are available, holds
the user's permission decision and shows ``DisplayRequest`` objects.
``InMemoryNotifier`` records what it was asked to show.
``ConsoleNotifier`` prints them to the terminal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

import click

from bizpulse.sockets.envelope import NotificationEvent, Priority

logger = logging.getLogger("bizpulse.notifications.notifier")

DEFAULT_ICON = "/favicon.ico"


class NotificationPermission(str, Enum):
    """User decision on system notifications."""
    GRANTED = "granted"
    DENIED = "denied"
    DEFAULT = "default"


@dataclass(frozen=True)
class NotificationAction:
    action: str
    title: str
    icon: Optional[str] = None


@dataclass(frozen=True)
class DisplayRequest:
    """A notification to show to the user."""
    title: str
    body: str
    icon: Optional[str] = None
    badge: Optional[str] = None
    image: Optional[str] = None
    tag: Optional[str] = None
    require_interaction: bool = False
    silent: bool = False
    data: Mapping[str, Any] = field(default_factory=dict)
    actions: Tuple[NotificationAction, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "title": self.title,
            "body": self.body,
            "require_interaction": self.require_interaction,
            "silent": self.silent,
            "data": dict(self.data),
            "actions": [
                {k: v for k, v in vars(a).items() if v is not None}
                for a in self.actions
            ],
        }
        for key in ("icon", "badge", "image", "tag"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        return out


class Notifier(Protocol):
    """System notification facility."""

    @property
    def supported(self) -> bool:
        ...

    @property
    def permission(self) -> NotificationPermission:
        ...

    async def request_permission(self) -> NotificationPermission:
        ...

    async def show(self, request: DisplayRequest) -> None:
        ...


def display_for_event(event: NotificationEvent, icon: Optional[str] = DEFAULT_ICON) -> DisplayRequest:
    """Display request for a realtime event."""
    return DisplayRequest(
        title=event.title,
        body=event.message,
        icon=icon,
        tag=event.type,
        require_interaction=event.requires_interaction,
        silent=event.priority is Priority.LOW,
        data=dict(event.data),
    )


class InMemoryNotifier:
    """
    Notifier that records displays instead of showing them.

    Args:
        permission: Initial permission state
        supported: Whether notifications are available at all
        prompt_result: Permission the user picks when prompted
    """

    def __init__(
        self,
        permission: NotificationPermission = NotificationPermission.GRANTED,
        *,
        supported: bool = True,
        prompt_result: NotificationPermission = NotificationPermission.GRANTED,
    ):
        self._permission = permission
        self._supported = supported
        self.prompt_result = prompt_result
        self.prompts = 0
        self.shown: List[DisplayRequest] = []
        self.fail_with: Optional[Exception] = None

    @property
    def supported(self) -> bool:
        return self._supported

    @property
    def permission(self) -> NotificationPermission:
        return self._permission

    async def request_permission(self) -> NotificationPermission:
        self.prompts += 1
        if self._permission is NotificationPermission.DEFAULT:
            self._permission = self.prompt_result
        return self._permission

    async def show(self, request: DisplayRequest) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.shown.append(request)
        logger.debug("Displayed notification %r", request.title)


class ConsoleNotifier:
    """
    Notifier that prints notifications to the terminal.

    Notifications that require interaction are framed with a heavy rule
    and marked as waiting for acknowledgement. The terminal bell rings
    for non-silent notifications when ``bell`` is set.
    """

    def __init__(self, *, err: bool = False, width: int = 60, bell: bool = False):
        self.err = err
        self.width = width
        self.bell = bell
        self.shown = 0

    @property
    def supported(self) -> bool:
        return True

    @property
    def permission(self) -> NotificationPermission:
        return NotificationPermission.GRANTED

    async def request_permission(self) -> NotificationPermission:
        return NotificationPermission.GRANTED

    async def show(self, request: DisplayRequest) -> None:
        rule = ("=" if request.require_interaction else "-") * self.width
        lines = [rule, click.style(f"  {request.title}", bold=True)]
        if request.body:
            lines.append(f"  {request.body}")
        if request.tag:
            lines.append(click.style(f"  tag: {request.tag}", dim=True))
        if request.require_interaction:
            lines.append(click.style("  requires interaction: acknowledge to dismiss", fg="yellow"))
        lines.append(rule)

        output = "\n".join(lines)
        if self.bell and not request.silent:
            output = "\a" + output
        click.echo(output, err=self.err)

        self.shown += 1
        logger.info(
            "Console notification shown",
            extra={"title": request.title, "require_interaction": request.require_interaction},
        )
