"""BizPulse CLI - Main Entry Point.

The `bizpulse` command connects to the realtime notification channel
from a terminal.

Commands:
    listen        - Stream notifications as they arrive
    login         - Store credentials in the token file
    logout        - Clear stored credentials
    config        - Show the effective configuration
    push-preview  - Render a push payload the way the worker would
"""

import asyncio
import json
import logging
import sys
from datetime import datetime
from typing import Optional, Tuple

import click

from . import __version__, __cli_name__
from .colors import (
    success, error, info, warning, dim, bold,
    section, kv, priority_tag,
    _CHECK, _CROSS,
)
from bizpulse.auth import FileTokenStore, TokenStore, TOKEN_KEY
from bizpulse.config import ClientConfig, ConfigError, load_config
from bizpulse.faults import Fault

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class BizPulseGroup(click.Group):
    """Click group with aligned command listing."""

    def format_commands(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        commands = []
        for subcommand in self.list_commands(ctx):
            cmd = self.get_command(ctx, subcommand)
            if cmd is None or cmd.hidden:
                continue
            commands.append((subcommand, cmd.get_short_help_str(limit=52)))

        if commands:
            with formatter.section(click.style("Commands", fg="cyan", bold=True)):
                width = max(len(name) for name, _ in commands) + 2
                for name, help_text in commands:
                    formatter.write(f"  {click.style(name.ljust(width), fg='green')} {help_text}\n")


def _configure_logging(config: ClientConfig, verbose: bool, quiet: bool) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.getLevelName(config.log_level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


@click.group(cls=BizPulseGroup)
@click.version_option(version=__version__, prog_name=__cli_name__)
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), help='Config file (YAML or JSON)')
@click.option('--env-file', type=click.Path(dir_okay=False), default='.env', show_default=True,
              help='.env file with BIZPULSE_* settings')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.option('--quiet', '-q', is_flag=True, help='Minimal output')
@click.pass_context
def cli(ctx, config_path: Optional[str], env_file: str, verbose: bool, quiet: bool):
    """Realtime business notifications in your terminal.

    \b
    Quick start:
      bizpulse login <token> --user-type manager --user-id <id>
      bizpulse listen
    """
    ctx.ensure_object(dict)
    try:
        config = load_config(config_path, env_file=env_file)
    except ConfigError as e:
        error(f"{_CROSS} Configuration error: {e}")
        sys.exit(2)

    ctx.obj['config'] = config
    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet
    _configure_logging(config, verbose, quiet)


# ============================================================================
# Commands
# ============================================================================

@cli.command('listen')
@click.option('--limit', type=click.IntRange(min=1), default=None, help='Exit after N notifications')
@click.option('--popups/--no-popups', default=True, show_default=True,
              help='Show a framed alert per notification (pinned for high/urgent)')
@click.pass_context
def listen(ctx, limit: Optional[int], popups: bool):
    """
    Stream notifications until Ctrl-C.

    Examples:
      bizpulse listen
      bizpulse listen --limit 5
      bizpulse listen --no-popups
    """
    config: ClientConfig = ctx.obj['config']
    quiet = ctx.obj['quiet']
    tokens = FileTokenStore(config.token_file)

    if not tokens.get(TOKEN_KEY):
        error(f"{_CROSS} Not logged in. Run: bizpulse login <token> --user-type <type> --user-id <id>")
        sys.exit(1)

    try:
        received = asyncio.run(_listen(config, tokens, limit, quiet, popups))
    except KeyboardInterrupt:
        if not quiet:
            click.echo()
            info(f"{_CHECK} Stopped")
        return
    except (Fault, ConfigError) as e:
        error(f"{_CROSS} {e}")
        sys.exit(1)

    if received is None:
        error(f"{_CROSS} Gave up after {config.max_reconnect_attempts} reconnection attempts")
        sys.exit(1)

    if not quiet:
        success(f"{_CHECK} Received {received} notification(s)")


async def _listen(
    config: ClientConfig,
    tokens: TokenStore,
    limit: Optional[int],
    quiet: bool,
    popups: bool = True,
) -> Optional[int]:
    from bizpulse.client import create_feed, create_manager
    from bizpulse.notifications.notifier import ConsoleNotifier
    from bizpulse.sockets.connection import ConnectionState

    manager = create_manager(config, tokens)
    notifier = ConsoleNotifier() if popups else None
    feed = create_feed(config, manager, tokens, notifier=notifier)
    done = asyncio.Event()
    received = 0

    def on_event(event) -> None:
        nonlocal received
        received += 1
        _print_event(event)
        if limit is not None and received >= limit:
            done.set()

    manager.add_listener(on_event)
    if not quiet:
        info(f"Listening on {manager.url} (Ctrl-C to stop)")

    try:
        async with feed:
            while not done.is_set():
                if manager.state is ConnectionState.DISCONNECTED and not manager.has_pending_retry:
                    return None
                try:
                    await asyncio.wait_for(done.wait(), timeout=0.5)
                except asyncio.TimeoutError:
                    pass
            await feed.flush()
    finally:
        manager.remove_listener(on_event)
        await manager.disconnect()
        if feed.store is not None:
            await feed.store.shutdown()

    return received


def _print_event(event) -> None:
    stamp = datetime.now().strftime("%H:%M:%S")
    click.echo(f"{click.style(stamp, dim=True)} {priority_tag(event.priority.value)} "
               f"{bold(event.title)}  {event.message}")


@cli.command('login')
@click.argument('token')
@click.option('--user-type', required=True, help='Role: admin, manager, customer')
@click.option('--user-id', required=True, help='Backend user id')
@click.pass_context
def login(ctx, token: str, user_type: str, user_id: str):
    """
    Store credentials for `listen`.

    Examples:
      bizpulse login eyJhbGciOi... --user-type manager --user-id 64f1c2
    """
    config: ClientConfig = ctx.obj['config']
    tokens = FileTokenStore(config.token_file)
    tokens.store_credentials(token, user_type, user_id)
    if not ctx.obj['quiet']:
        success(f"{_CHECK} Logged in as {user_type} {user_id}")
        kv("Token file", str(tokens.path))


@cli.command('logout')
@click.pass_context
def logout(ctx):
    """Clear stored credentials."""
    config: ClientConfig = ctx.obj['config']
    tokens = FileTokenStore(config.token_file)
    if not tokens.get(TOKEN_KEY):
        if not ctx.obj['quiet']:
            warning("Not logged in")
        return
    tokens.clear()
    if not ctx.obj['quiet']:
        success(f"{_CHECK} Logged out")


@cli.command('config')
@click.pass_context
def show_config(ctx):
    """Show the effective configuration (secrets redacted)."""
    config: ClientConfig = ctx.obj['config']

    section("Configuration")
    for key, value in config.to_dict().items():
        if key == "vapid_public_key" and value:
            value = f"{value[:12]}..."
        kv(key, "-" if value is None else value)
    kv("ws_url", config.ws_url)

    creds = FileTokenStore(config.token_file).credentials()
    click.echo()
    section("Credentials")
    kv("token", "stored (redacted)" if creds.token else "not set")
    kv("user_type", creds.user_type or "-")
    kv("user_id", creds.user_id or "-")


@cli.command('push-preview')
@click.argument('payload')
@click.option('--action', default=None, help='Click action to resolve (view, dismiss)')
@click.option('--open-url', 'open_urls', multiple=True, help='URL of an already open window (repeatable)')
@click.option('--json', 'as_json', is_flag=True, help='Print the result as JSON')
@click.pass_context
def push_preview(ctx, payload: str, action: Optional[str], open_urls: Tuple[str, ...], as_json: bool):
    """
    Show how a push message would be displayed.

    Examples:
      bizpulse push-preview '{"title": "New order", "message": "#1042", "priority": "high"}'
      bizpulse push-preview '{"data": {"url": "/orders"}}' --open-url http://app/orders
    """
    from bizpulse.push.worker import build_push_display, resolve_click

    config: ClientConfig = ctx.obj['config']
    display = build_push_display(payload, app_name=config.app_name)
    outcome = resolve_click(action, display.data, open_urls)

    if as_json:
        click.echo(json.dumps({
            "display": display.to_dict(),
            "click": {"kind": outcome.kind, "url": outcome.url},
        }, indent=2))
        return

    section("Notification")
    kv("title", display.title)
    kv("body", display.body)
    kv("tag", display.tag or "-")
    kv("require_interaction", display.require_interaction)
    kv("actions", ", ".join(a.action for a in display.actions) or "-")
    click.echo()
    section("On click")
    kv("action", action or "(default)")
    kv("result", f"{outcome.kind} {outcome.url or ''}".strip())
    if not display.actions:
        dim("  fallback display: payload missing or undecodable")


def main():
    """Entry point for `bizpulse` command."""
    cli(obj={})


if __name__ == '__main__':
    main()
