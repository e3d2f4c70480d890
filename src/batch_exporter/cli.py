from __future__ import annotations

import asyncio
import json
from typing import Optional

import typer
from loguru import logger

from .config import Settings
from .errors import ExporterError
from .exporter import BatchExporter
from .provisioner import Provisioner
from .schema import DEFAULT_SCHEMA
from .shaper import AuditResultShaper, PassthroughShaper
from .sinks import build_sink
from .utils import iter_ndjson

app = typer.Typer(help="batch_exporter operational CLI")

KINDS = ("rows", "results")

# ---------------------------
# Common options
# ---------------------------


def sink_opt() -> str:
    return typer.Option("bigquery", "--sink", envvar="EXPORTER_SINK", help="bigquery|postgres")


def dataset_opt() -> str:
    return typer.Option(..., "--dataset", envvar="EXPORTER_DATASET", help="Dataset / schema name")


def table_opt() -> str:
    return typer.Option(..., "--table", envvar="EXPORTER_TABLE", help="Table name")


def project_opt() -> Optional[str]:
    return typer.Option(None, "--project-id", envvar="EXPORTER_PROJECT_ID", help="GCP project")


def dsn_opt() -> Optional[str]:
    return typer.Option(None, "--dsn", envvar="EXPORTER_DSN", help="PostgreSQL DSN")


def _settings(sink: str, dataset: str, table: str, project_id: Optional[str], dsn: Optional[str], **extra) -> Settings:
    if sink not in ("bigquery", "postgres"):
        raise typer.BadParameter("sink must be one of: bigquery, postgres")
    return Settings(SINK=sink, DATASET=dataset, TABLE=table, PROJECT_ID=project_id, DSN=dsn, **extra)


# ---------------------------
# Schema / provisioning
# ---------------------------


@app.command("schema")
def schema():
    """Print the default table schema."""
    typer.echo(json.dumps(DEFAULT_SCHEMA.to_dict(), indent=2))


@app.command("provision")
def provision(
    sink: str = sink_opt(),
    dataset: str = dataset_opt(),
    table: str = table_opt(),
    project_id: Optional[str] = project_opt(),
    dsn: Optional[str] = dsn_opt(),
):
    settings = _settings(sink, dataset, table, project_id, dsn)
    try:
        state = asyncio.run(_provision(settings))
    except ExporterError as e:
        logger.error(f"Provisioning failed: {e}")
        raise typer.Exit(code=1)
    logger.success(f"Destination {settings.destination} ready ({state})")
    typer.echo(json.dumps({"destination": str(settings.destination), "state": state}, indent=2))


async def _provision(settings: Settings) -> str:
    async with build_sink(settings) as client:
        state = await Provisioner(client, label=str(settings.destination)).ensure_destination_ready()
    return state.value


# ---------------------------
# Ingest
# ---------------------------


@app.command("ingest-ndjson")
def ingest_ndjson(
    kind: str = typer.Argument(..., help="rows|results"),
    path: str = typer.Argument(..., help="File path or '-' for stdin (.gz ok)"),
    sink: str = sink_opt(),
    dataset: str = dataset_opt(),
    table: str = table_opt(),
    project_id: Optional[str] = project_opt(),
    dsn: Optional[str] = dsn_opt(),
    batch_size: int = typer.Option(500, "--batch-size", help="Rows per insert request"),
    batch_timeout_ms: int = typer.Option(5000, "--batch-timeout-ms", help="Flush after this many ms"),
):
    """Stream NDJSON into the sink: flat rows, or ``{result, test}`` events."""
    kind_l = kind.lower()
    if kind_l not in KINDS:
        raise typer.BadParameter("kind must be one of: rows, results")

    settings = _settings(
        sink,
        dataset,
        table,
        project_id,
        dsn,
        BATCH_SIZE=batch_size,
        BATCH_TIMEOUT_MS=batch_timeout_ms,
    )
    try:
        out = asyncio.run(_ingest_ndjson(kind_l, path, settings))
    except (ExporterError, ValueError) as e:
        logger.error(f"Ingest failed: {e}")
        raise typer.Exit(code=1)
    logger.success(f"Ingested {out['ingested']} records into {out['destination']}")
    typer.echo(json.dumps(out, default=str, indent=2))


async def _ingest_ndjson(kind: str, path: str, settings: Settings) -> dict:
    shaper = AuditResultShaper() if kind == "results" else PassthroughShaper()
    n = 0
    async with build_sink(settings) as client:
        async with BatchExporter(client, settings.exporter_config(), shaper=shaper) as exporter:
            for obj in iter_ndjson(path):
                await exporter.put_records(shaper(obj))
                n += 1
        # close() drained on exit
        left = exporter.buffered
    return {"ingested": n, "destination": str(settings.destination), "unflushed": left}


if __name__ == "__main__":
    app()
