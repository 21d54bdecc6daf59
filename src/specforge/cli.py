"""Click CLI entry point for Specforge."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click

from specforge.config import get_config


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option("--debug", is_flag=True, help="Debug logging")
@click.option("--db", "db_path", default=None, help="SQLite database path")
def main(verbose: bool, debug: bool, db_path: str | None) -> None:
    """Specforge: interview transcripts to PRD and implementation spec."""
    level = logging.DEBUG if debug else (
        logging.INFO if verbose else logging.WARNING
    )
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    from specforge.db.engine import init_db
    init_db(db_path or get_config().db_path)


@main.command("init-db")
def init_db_command() -> None:
    """Create the database tables."""
    click.echo("Database ready")


@main.command()
@click.argument("session_id")
def run(session_id: str) -> None:
    """Run all pipeline stages for SESSION_ID, printing progress."""
    from specforge.db.store import SqliteArtifactStore
    from specforge.exceptions import BackendError
    from specforge.llm_client import get_llm_client
    from specforge.pipeline.orchestrator import Orchestrator
    from specforge.pipeline.progress import (
        RUN_COMPLETE,
        STAGE_DONE,
        STAGE_ERROR,
        STAGE_RUNNING,
        event_stream,
        start_run,
    )

    try:
        backend = get_llm_client()
    except BackendError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    orchestrator = Orchestrator(backend, SqliteArtifactStore())

    async def _run() -> bool:
        queue = start_run(orchestrator, session_id)
        async for record in event_stream(queue):
            event, data = record["event"], json.loads(record["data"])
            if event == STAGE_RUNNING:
                click.echo(f"[{data['stageId']}] running...")
            elif event == STAGE_DONE:
                kind = (data.get("artifact") or {}).get("kind", "")
                click.echo(f"[{data['stageId']}] done ({kind})")
            elif event == STAGE_ERROR:
                click.echo(f"[{data.get('stageId')}] error: {data.get('message')}", err=True)
            elif event == RUN_COMPLETE:
                return True
        return False

    if asyncio.run(_run()):
        click.echo("Pipeline complete")
    else:
        sys.exit(1)


@main.command()
@click.argument("session_id")
@click.argument(
    "stage", type=click.Choice(["facts", "hypotheses", "prd", "spec"]),
)
def show(session_id: str, stage: str) -> None:
    """Print the stored artifact of STAGE for SESSION_ID as JSON."""
    from specforge.db.store import SqliteArtifactStore

    artifact = SqliteArtifactStore().get(session_id, stage)
    if artifact is None:
        click.echo(f"No {stage} result for session {session_id}", err=True)
        sys.exit(1)
    click.echo(json.dumps(artifact.model_dump(mode="json"), ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
