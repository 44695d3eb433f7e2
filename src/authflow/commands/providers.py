"""Provider commands -- manage provider definitions.

Provides the ``authflow providers`` sub-command group. Each provider is a
:class:`~authflow.models.FlowConfig` stored as JSON in the config
directory; ``add`` can start from a built-in preset.

Typical workflow::

    authflow providers presets
    authflow providers add google --preset google --client-id abc \\
        --redirect-uri http://127.0.0.1:8765/callback --url https://app.example/auth/google
    authflow providers show google
"""

from __future__ import annotations

import json
from typing import Any, Optional

import typer

from authflow.exceptions import AuthFlowError, InvalidUsageError
from authflow.output import error, format_response, info, print_table, success, suggest

providers_app = typer.Typer(no_args_is_help=True)


def _fail(exc: AuthFlowError) -> typer.Exit:
    error(str(exc))
    return typer.Exit(code=exc.exit_code)


def _parse_extra(pairs: Optional[list[str]]) -> dict[str, Any]:
    """Parse ``--param KEY=VALUE`` items; values that are valid JSON are decoded."""
    extra: dict[str, Any] = {}
    for item in pairs or []:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise InvalidUsageError(f"--param expects KEY=VALUE, got '{item}'")
        try:
            extra[key] = json.loads(raw)
        except json.JSONDecodeError:
            extra[key] = raw
    return extra


@providers_app.command("list")
def providers_list() -> None:
    """List configured providers."""
    from authflow.config import list_providers, load_provider

    names = list_providers()
    if not names:
        info("No providers configured.")
        suggest("Add one: authflow providers add NAME --preset github")
        return

    rows: list[list[str]] = []
    for name in names:
        try:
            config = load_provider(name)
        except AuthFlowError as exc:
            rows.append([name, "(invalid)", str(exc)])
            continue
        rows.append([name, config.flow_kind.value, config.authorization_endpoint or ""])
    print_table(["Name", "Flow", "Authorization endpoint"], rows, title="Providers")


@providers_app.command("show")
def providers_show(name: str = typer.Argument(help="Provider name.")) -> None:
    """Print a provider definition."""
    from authflow.config import load_provider

    try:
        config = load_provider(name)
    except AuthFlowError as exc:
        raise _fail(exc) from None
    format_response(config.model_dump(mode="json", by_alias=True, exclude_none=True))


@providers_app.command("add")
def providers_add(
    name: str = typer.Argument(help="Provider name (storage key for its pending flows)."),
    preset: Optional[str] = typer.Option(None, "--preset", help="Start from a built-in preset."),
    client_id: Optional[str] = typer.Option(None, "--client-id"),
    redirect_uri: Optional[str] = typer.Option(None, "--redirect-uri"),
    url: Optional[str] = typer.Option(None, "--url", help="Code exchange endpoint."),
    authorization_endpoint: Optional[str] = typer.Option(None, "--authorization-endpoint"),
    end_session_uri: Optional[str] = typer.Option(None, "--end-session-uri"),
    post_logout_redirect_uri: Optional[str] = typer.Option(None, "--post-logout-redirect-uri"),
    response_type: Optional[str] = typer.Option(None, "--response-type"),
    scope: Optional[list[str]] = typer.Option(None, "--scope", help="Repeat for several scopes."),
    state: Optional[bool] = typer.Option(
        None, "--state/--no-state", help="Generate a random state per flow (default: on, or as the preset says)."
    ),
    nonce: Optional[bool] = typer.Option(
        None, "--nonce/--no-nonce", help="Generate a random nonce per flow (default: off, or as the preset says)."
    ),
    param: Optional[list[str]] = typer.Option(
        None, "--param", help="Any other field as KEY=VALUE (JSON values accepted)."
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing provider."),
) -> None:
    """Create a provider definition."""
    from authflow.config import provider_exists, save_provider
    from authflow.models import FlowConfig
    from authflow.providers import preset_config

    fields: dict[str, Any] = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "url": url,
        "authorization_endpoint": authorization_endpoint,
        "end_session_uri": end_session_uri,
        "post_logout_redirect_uri": post_logout_redirect_uri,
        "response_type": response_type,
        "scope": scope or None,
    }
    overrides = {key: value for key, value in fields.items() if value is not None}

    try:
        if provider_exists(name) and not force:
            raise InvalidUsageError(f"Provider '{name}' already exists (use --force to overwrite)")
        if state is not None:
            overrides["state"] = state
        if nonce is not None:
            overrides["nonce"] = nonce
        overrides.update(_parse_extra(param))

        if preset:
            config = preset_config(preset, name=name, **overrides)
        else:
            config = FlowConfig.model_validate({"name": name, **_with_default_params(overrides)})
        path = save_provider(config)
    except AuthFlowError as exc:
        raise _fail(exc) from None
    except ValueError as exc:
        raise _fail(InvalidUsageError(str(exc))) from None

    success(f'Provider "{name}" saved to {path}.')
    suggest(f"Sign in: authflow login {name}")


def _with_default_params(overrides: dict[str, Any]) -> dict[str, Any]:
    """Fill in the parameter lists a hand-written provider usually needs."""
    data = dict(overrides)
    data.setdefault("state", True)
    if "scope" in data:
        data.setdefault("required_url_params", ["scope"])
    optional = [param for param in ("state", "nonce") if data.get(param)]
    data.setdefault("optional_url_params", optional)
    return data


@providers_app.command("remove")
def providers_remove(name: str = typer.Argument(help="Provider name.")) -> None:
    """Delete a provider definition."""
    from authflow.config import delete_provider

    try:
        delete_provider(name)
    except AuthFlowError as exc:
        raise _fail(exc) from None
    success(f'Provider "{name}" removed.')


@providers_app.command("presets")
def providers_presets() -> None:
    """List the built-in provider presets."""
    from authflow.providers import PRESETS, list_presets

    rows = [[key, PRESETS[key]["authorization_endpoint"]] for key in list_presets()]
    print_table(["Preset", "Authorization endpoint"], rows, title="Presets")
