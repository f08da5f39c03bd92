"""
Operator commands. Each worker command runs a single poll-process-update
cycle and exits 0; configuration and datastore failures exit 1.
"""

from __future__ import annotations

import asyncio
import json
from typing import Awaitable, Callable, Optional

import typer
from pydantic import ValidationError

from .config import Settings, configure_logging, get_settings
from .core.database import create_db_engine, init_db as create_tables, make_session_factory
from .core.datastore import Datastore
from .core.dispatcher import DispatchSummary, NotificationDispatcher
from .core.invoice_worker import InvoiceGenerator, InvoiceRunSummary, InvoiceWorker
from .core.renderer import DocumentRenderer, LatexRenderer
from .core.seed import seed_initial_data
from .errors import ConfigurationError, DatastoreError, StorageError
from .integrations.push import generate_vapid_keys as new_vapid_keys
from .integrations.senders import ChannelSenders, build_http_client, build_senders
from .integrations.storage import SupabaseStorage

app = typer.Typer(add_completion=False, help="Red Garden background workers")


def open_datastore(settings: Settings) -> Datastore:
    settings.require("database_url")
    return Datastore(create_db_engine(settings.database_url))


async def run_notifications(
    settings: Settings,
    datastore: Optional[Datastore] = None,
    senders: Optional[ChannelSenders] = None,
) -> DispatchSummary:
    datastore = datastore or open_datastore(settings)
    async with build_http_client(settings) as client:
        dispatcher = NotificationDispatcher(settings, datastore, senders or build_senders(settings, client))
        return await dispatcher.run_once()


async def run_invoices(
    settings: Settings,
    datastore: Optional[Datastore] = None,
    renderer: Optional[DocumentRenderer] = None,
    *,
    loop: bool = False,
) -> Optional[InvoiceRunSummary]:
    datastore = datastore or open_datastore(settings)
    if renderer is None:
        if not settings.invoice_template_path.is_file():
            raise ConfigurationError(f"Invoice template not found: {settings.invoice_template_path}")
        renderer = LatexRenderer.from_settings(settings)

    async with build_http_client(settings) as client:
        storage = SupabaseStorage(settings, client)
        worker = InvoiceWorker(settings, datastore, InvoiceGenerator(settings, datastore, renderer, storage))
        if loop:
            await worker.run_forever()
            return None
        return await worker.run_once()


def _load_settings() -> Settings:
    try:
        settings = get_settings()
    except ValidationError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(1)
    configure_logging(settings.log_level)
    return settings


def _run(job: Callable[[Settings], Awaitable[object]]) -> None:
    settings = _load_settings()
    try:
        result = asyncio.run(job(settings))
    except ConfigurationError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(1)
    except DatastoreError as exc:
        typer.echo(f"Datastore error: {exc}", err=True)
        raise typer.Exit(1)
    if result is not None:
        typer.echo(json.dumps(result.__dict__))


@app.command("notify-once")
def notify_once() -> None:
    """Dispatch one batch of pending notifications."""
    _run(run_notifications)


@app.command("invoices-once")
def invoices_once() -> None:
    """Generate invoices for one batch of pending bookings."""
    _run(run_invoices)


@app.command("invoices-loop")
def invoices_loop() -> None:
    """Keep polling for pending invoices until interrupted."""
    _run(lambda settings: run_invoices(settings, loop=True))


@app.command("create-invoices-bucket")
def create_invoices_bucket() -> None:
    """Create the public storage bucket invoices are uploaded to."""

    async def job(settings: Settings):
        async with build_http_client(settings) as client:
            return await SupabaseStorage(settings, client).create_bucket(public=True)

    settings = _load_settings()
    try:
        result = asyncio.run(job(settings))
    except (ConfigurationError, StorageError) as exc:
        typer.echo(f"Failed to create bucket: {exc}", err=True)
        raise typer.Exit(1)
    state = "created" if result["created"] else "already exists"
    typer.echo(f"Bucket {result['name']} {state}")


@app.command("generate-vapid-keys")
def generate_vapid_keys() -> None:
    """Print a new VAPID key pair for VAPID_PUBLIC_KEY / VAPID_PRIVATE_KEY."""
    keys = new_vapid_keys()
    typer.echo(f"VAPID_PUBLIC_KEY={keys['publicKey']}")
    typer.echo(f"VAPID_PRIVATE_KEY={keys['privateKey']}")


@app.command("init-db")
def init_db() -> None:
    """Create tables and seed the site settings row."""
    settings = _load_settings()
    try:
        settings.require("database_url")
    except ConfigurationError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(1)
    engine = create_db_engine(settings.database_url)
    create_tables(engine)
    db = make_session_factory(engine)()
    try:
        seed_initial_data(db, settings)
    finally:
        db.close()
    typer.echo("Database ready")


def notify_once_main() -> None:
    typer.run(notify_once)


def invoices_once_main() -> None:
    typer.run(invoices_once)


if __name__ == "__main__":
    app()
