"""Command line front end for citypulse."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
from loguru import logger

from citypulse.cli.chat import InteractiveChat
from citypulse.cli.render import Renderer, create_cli_renderer
from citypulse.config import Settings, get_settings
from citypulse.credentials import CredentialHolder, JSONKeyValueStore
from citypulse.dashboard import DashboardResolver
from citypulse.endpoints import KNOWN_CITIES, KNOWN_INDEXES, PRESETS, compose_url
from citypulse.errors import ConfigurationError, TransportError
from citypulse.gateway import HttpxGateway
from citypulse.generation import GenerationClient
from citypulse.logging_utils import configure_logging
from citypulse.session import ConversationSession
from citypulse.types import JSON, DashboardQuery, DashboardState, Failed

app = typer.Typer(
    name="citypulse",
    help="Taipei city assistant and dashboard builder.",
    add_completion=False,
    rich_markup_mode="rich",
)
credential_app = typer.Typer(help="Manage the remembered Gemini API key.")
app.add_typer(credential_app, name="credential")


def build_gateway(settings: Settings) -> HttpxGateway:
    return HttpxGateway(timeout_seconds=settings.request_timeout_seconds)


def build_credentials(settings: Settings) -> CredentialHolder:
    holder = CredentialHolder(
        JSONKeyValueStore(settings.preferences_path),
        remember=settings.remember_credential,
    )
    holder.load()
    return holder


def _credential_override(settings: Settings, api_key: str | None) -> str | None:
    return api_key or settings.api_key or None


@app.command()
def chat(
    model: str | None = typer.Option(None, "--model", "-m", help="Model name, e.g. gemini-2.5-pro"),
    api_key: str | None = typer.Option(None, "--api-key", help="Use this key for the session only"),
    home: Path | None = typer.Option(None, "--home", help="Preferences directory"),  # noqa: B008
) -> None:
    """Start an interactive chat with the assistant."""
    settings = get_settings(model=model, home=home)
    configure_logging(profile="chat", level=settings.log_level)
    renderer = create_cli_renderer()
    credentials = build_credentials(settings)
    asyncio.run(_run_chat(settings, credentials, renderer, _credential_override(settings, api_key)))


async def _run_chat(
    settings: Settings,
    credentials: CredentialHolder,
    renderer: Renderer,
    credential: str | None,
) -> None:
    async with build_gateway(settings) as gateway:
        session = ConversationSession(
            GenerationClient(gateway, api_base=settings.generation_api_base),
            model_name=settings.model,
            credentials=credentials,
        )
        await InteractiveChat(session, renderer, credentials, credential=credential).run()


@app.command()
def ask(
    message: str = typer.Argument(..., help="Message to send"),
    model: str | None = typer.Option(None, "--model", "-m", help="Model name"),
    api_key: str | None = typer.Option(None, "--api-key", help="Use this key for this call only"),
    home: Path | None = typer.Option(None, "--home", help="Preferences directory"),  # noqa: B008
) -> None:
    """Send a single message and print the reply."""
    settings = get_settings(model=model, home=home)
    renderer = create_cli_renderer()
    credentials = build_credentials(settings)
    session = asyncio.run(_ask(settings, credentials, message, _credential_override(settings, api_key)))

    state = session.state
    if state.error is not None:
        renderer.error(str(state.error))
        raise typer.Exit(1)
    if len(state.transcript) > 1 and state.transcript[-1].role == "model":
        renderer.message(state.transcript[-1])


async def _ask(
    settings: Settings,
    credentials: CredentialHolder,
    message: str,
    credential: str | None,
) -> ConversationSession:
    async with build_gateway(settings) as gateway:
        session = ConversationSession(
            GenerationClient(gateway, api_base=settings.generation_api_base),
            model_name=settings.model,
            credentials=credentials,
        )
        session.start(seed_input="")
        await session.send(message, credential=credential)
        return session


@app.command()
def dashboard(
    city: str | None = typer.Option(None, "--city", help=f"City ({', '.join(KNOWN_CITIES)})"),
    index: str | None = typer.Option(None, "--index", help=f"Dashboard index ({', '.join(KNOWN_INDEXES)})"),
    limit: int | None = typer.Option(None, "--limit", help="Maximum components to load (1-12)"),
    base_url: str | None = typer.Option(None, "--base-url", help="Dashboard API base URL"),
) -> None:
    """Resolve a dashboard index and load each of its components."""
    settings = get_settings(city=city, index=index, component_limit=limit, base_url=base_url)
    query = DashboardQuery.create(settings.city, settings.index, settings.component_limit)
    state = asyncio.run(_build_dashboard(settings, query))

    create_cli_renderer().dashboard(state)
    if isinstance(state.index_state, Failed):
        raise typer.Exit(1)


async def _build_dashboard(settings: Settings, query: DashboardQuery) -> DashboardState:
    async with build_gateway(settings) as gateway:
        resolver = DashboardResolver(gateway, base_url=settings.base_url)
        return await resolver.build(query)


@app.command()
def fetch(
    preset: str | None = typer.Option(None, "--preset", "-p", help=f"One of: {', '.join(PRESETS)}"),
    service: str | None = typer.Option(None, "--service", help="Service path, e.g. api/v1/dashboard"),
    query: str | None = typer.Option(None, "--query", help="Query string, e.g. city=taipei"),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method"),
    header: list[str] | None = typer.Option(None, "--header", "-H", help="Header as 'Name: value'"),  # noqa: B008
    body: str | None = typer.Option(None, "--body", help="JSON request body"),
    base_url: str | None = typer.Option(None, "--base-url", help="API base URL"),
    preview: bool = typer.Option(False, "--preview", help="Only print the composed URL"),
) -> None:
    """Send one request to the dashboard API and print the JSON response."""
    settings = get_settings(base_url=base_url)
    renderer = create_cli_renderer()
    try:
        url = _probe_url(settings, preset, service, query)
        headers = _parse_headers(header or [])
        payload = json.loads(body) if body else None
    except ConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"--body is not valid JSON: {exc}") from exc

    if preview:
        typer.echo(url)
        return

    try:
        result = asyncio.run(_probe(settings, method, url, headers, payload))
    except TransportError as exc:
        renderer.error(str(exc))
        raise typer.Exit(1) from exc
    renderer.json(result, title=f"{method.upper()} {url}")


def _probe_url(settings: Settings, preset: str | None, service: str | None, query: str | None) -> str:
    if preset is not None:
        chosen = PRESETS.get(preset)
        if chosen is None:
            raise ConfigurationError(f"unknown preset {preset!r}; choose one of {', '.join(PRESETS)}")
        service = chosen.service if service is None else service
        query = chosen.query if query is None else query
    return compose_url(settings.base_url, service or "", query or "")


def _parse_headers(raw_headers: list[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for raw in raw_headers:
        name, separator, value = raw.partition(":")
        if not separator or not name.strip():
            raise ConfigurationError(f"invalid header {raw!r}; expected 'Name: value'")
        headers[name.strip()] = value.strip()
    return headers


async def _probe(settings: Settings, method: str, url: str, headers: dict[str, str], body: JSON) -> JSON:
    logger.info("probe.request method={} url={}", method, url)
    async with build_gateway(settings) as gateway:
        return await gateway.request(method, url, headers=headers, body=body)


@credential_app.command("set")
def credential_set(
    value: str = typer.Argument(..., help="Gemini API key"),
    home: Path | None = typer.Option(None, "--home", help="Preferences directory"),  # noqa: B008
) -> None:
    """Remember an API key on this machine."""
    settings = get_settings(home=home)
    holder = build_credentials(settings)
    holder.set_remember(True)
    holder.update(value.strip())
    typer.echo(f"Saved to {settings.preferences_path}")


@credential_app.command("forget")
def credential_forget(
    home: Path | None = typer.Option(None, "--home", help="Preferences directory"),  # noqa: B008
) -> None:
    """Erase the remembered API key."""
    build_credentials(get_settings(home=home)).forget()
    typer.echo("Forgot the remembered API key.")


@credential_app.command("show")
def credential_show(
    home: Path | None = typer.Option(None, "--home", help="Preferences directory"),  # noqa: B008
) -> None:
    """Show whether an API key is remembered (masked)."""
    value = build_credentials(get_settings(home=home)).value
    if not value:
        typer.echo("(no API key remembered)")
        return
    typer.echo(f"{value[:4]}…{value[-2:]}" if len(value) > 8 else "****")
