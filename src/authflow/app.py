"""Typer application and CLI entry point for authflow.

The CLI drives the flow engine from a terminal: the system browser plays
the part of the popup or page, a loopback server receives the redirect,
and pending ``state`` / ``nonce`` values are kept in a
:class:`~authflow.storage.FileStorage` so a flow can span several commands::

    authflow providers add github --preset github --client-id ... \\
        --redirect-uri http://127.0.0.1:8765/callback
    authflow login github                 # popup-style flow, prints the result
    authflow url github                   # page-style: print the URL only ...
    authflow redirect 'http://127.0.0.1:8765/callback?code=...&state=...' -p github

:func:`main` is the console-script entry point declared in
``pyproject.toml``. :class:`~authflow.exceptions.AuthFlowError` exits with
its own exit code.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Optional

import typer
from rich.logging import RichHandler

from authflow import __version__
from authflow.exceptions import AuthFlowError, InvalidUsageError
from authflow.exit_codes import EXIT_GENERIC_FAILURE
from authflow.output import error, format_response, get_output, info, print_data, success, suggest

app = typer.Typer(
    name="authflow",
    help="Run OAuth2 / OpenID Connect authorization flows.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

from authflow.commands.providers import providers_app  # noqa: E402

app.add_typer(providers_app, name="providers", help="Manage provider definitions.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"authflow {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    """Send ``authflow`` log records to stderr through Rich."""
    logger = logging.getLogger("authflow")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = RichHandler(console=get_output().stderr_console, show_path=False, show_time=verbose)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Base URL for exchange endpoints."),
    platform: Optional[str] = typer.Option(None, "--platform", help="Platform: browser or mobile."),
) -> None:
    """Initialise output and logging, and stash config overrides in ``ctx.obj``."""
    from authflow.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet))
    _configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["base_url"] = base_url
    ctx.obj["platform"] = platform


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def parse_pairs(pairs: Optional[list[str]], option: str = "--data") -> dict[str, str]:
    """Turn ``["key=value", ...]`` into a dict.

    Raises:
        InvalidUsageError: If an item has no ``=``.
    """
    result: dict[str, str] = {}
    for item in pairs or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise InvalidUsageError(f"{option} expects KEY=VALUE, got '{item}'")
        result[key] = value
    return result


def _build_flow(ctx: typer.Context, open_browser: bool = True, current_url: str = "") -> Any:
    from authflow.config import resolve_config
    from authflow.id_token import TokenAuthentication
    from authflow.navigator import UrlNavigator, WebBrowserNavigator
    from authflow.oauth2 import OAuth2
    from authflow.popup import LoopbackPopup
    from authflow.storage import FileStorage

    obj = ctx.obj or {}
    config = resolve_config(cli_base_url=obj.get("base_url"), cli_platform=obj.get("platform"))
    storage = FileStorage()
    navigator = WebBrowserNavigator(current_url) if open_browser else UrlNavigator(current_url)
    return OAuth2(
        storage=storage,
        popup=LoopbackPopup(open_browser=open_browser, announce=_announce_url),
        config=config,
        auth=TokenAuthentication(storage),
        navigator=navigator,
    )


def _announce_url(url: str) -> None:
    info(f"Open this URL to sign in:\n{url}")


def _remember_id_token(flow: Any, result: Any) -> None:
    if not isinstance(result, dict):
        return
    id_token = result.get(flow.config.response_id_token_prop)
    if id_token:
        flow.auth.set_id_token(id_token)


def _fail(exc: AuthFlowError) -> typer.Exit:
    error(str(exc))
    return typer.Exit(code=exc.exit_code)


# ------------------------------------------------------------------ #
# Flow commands
# ------------------------------------------------------------------ #


@app.command("url")
def url_command(
    ctx: typer.Context,
    provider: str = typer.Argument(help="Provider name."),
) -> None:
    """Issue state / nonce for PROVIDER and print its authorization URL."""
    from authflow.config import load_provider

    try:
        config = load_provider(provider)
        flow = _build_flow(ctx, open_browser=False)
        url = flow.authorization_url(config)
    except AuthFlowError as exc:
        raise _fail(exc) from None
    print_data(url)
    suggest(f"After signing in: authflow redirect '<redirect url>' --provider {provider}")


@app.command("login")
def login_command(
    ctx: typer.Context,
    provider: str = typer.Argument(help="Provider name."),
    data: Optional[list[str]] = typer.Option(
        None, "--data", "-d", help="Extra KEY=VALUE sent with the code exchange."
    ),
    no_browser: bool = typer.Option(False, "--no-browser", help="Print the URL instead of opening it."),
) -> None:
    """Run the authorization flow for PROVIDER and print the result."""
    from authflow.config import load_provider

    try:
        user_data = parse_pairs(data)
        config = load_provider(provider)
        flow = _build_flow(ctx, open_browser=not no_browser)
        result = asyncio.run(flow.open(config, user_data))
    except AuthFlowError as exc:
        raise _fail(exc) from None

    if config.display == "page":
        print_data(flow.navigator.current_url)
        suggest(f"After signing in: authflow redirect '<redirect url>' --provider {provider}")
        return
    _remember_id_token(flow, result)
    success(f'Signed in with "{provider}".')
    format_response(result)


@app.command("redirect")
def redirect_command(
    ctx: typer.Context,
    redirect_url: str = typer.Argument(help="The URL the provider redirected to."),
    provider: Optional[str] = typer.Option(
        None, "--provider", "-p", help="Validate and complete the flow for this provider."
    ),
    data: Optional[list[str]] = typer.Option(
        None, "--data", "-d", help="Extra KEY=VALUE sent with the code exchange."
    ),
) -> None:
    """Parse REDIRECT_URL; with --provider, verify it and finish the flow."""
    from authflow.config import load_provider

    try:
        user_data = parse_pairs(data)
        flow = _build_flow(ctx, open_browser=False, current_url=redirect_url)
        if provider is None:
            format_response(flow.set_token_from_redirect())
            return
        result = asyncio.run(flow.resume(load_provider(provider), user_data))
    except AuthFlowError as exc:
        raise _fail(exc) from None

    _remember_id_token(flow, result)
    success(f'Signed in with "{provider}".')
    format_response(result)


@app.command("logout")
def logout_command(
    ctx: typer.Context,
    provider: str = typer.Argument(help="Provider name."),
    no_browser: bool = typer.Option(False, "--no-browser", help="Print the URL instead of opening it."),
) -> None:
    """End the PROVIDER session using the stored identity token."""
    from authflow.config import load_provider

    try:
        config = load_provider(provider)
        flow = _build_flow(ctx, open_browser=not no_browser)
        flow.end_session(config)
    except AuthFlowError as exc:
        raise _fail(exc) from None

    flow.auth.clear()
    print_data(flow.navigator.current_url)


def main() -> None:
    """CLI entry point invoked by the ``authflow`` console script."""
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except AuthFlowError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:  # noqa: BLE001
        logging.getLogger("authflow").debug("Unhandled error", exc_info=True)
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
