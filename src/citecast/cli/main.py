import typer
from citecast.core.logging import setup_logging, get_logger

# Initialize logging before anything else
setup_logging()
logger = get_logger(__name__)

app = typer.Typer()

@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Start the API server."""
    import uvicorn
    logger.info("starting_api_server", host=host, port=port)
    uvicorn.run("citecast.api.app:app", host=host, port=port, reload=reload)

@app.command()
def version():
    """Show version."""
    from citecast import __version__
    print(f"Citecast v{__version__}")


@app.command("init-db")
def init_db():
    """Create all database tables."""
    from citecast.utils.db import init_db as create_tables
    create_tables()
    print("Database initialized.")


def _runtime():
    from citecast.core.runtime import build_runtime
    from citecast.utils.db import engine
    # Sweeps run in the foreground here
    return build_runtime(engine, immediate_sweeps=False)


@app.command()
def sweep(batch_size: int = typer.Option(None, help="Max jobs to process (default: SWEEP_BATCH_SIZE)")):
    """Run a single worker sweep."""
    import asyncio

    runtime = _runtime()
    result = asyncio.run(runtime.worker.run_sweep(batch_size))
    print(f"Processed {result.processed} job(s), {result.errors} error(s).")


@app.command()
def worker(interval: int = typer.Option(None, help="Seconds between sweeps (default: WORKER_INTERVAL_SECONDS)")):
    """Sweep the job queue periodically until interrupted."""
    import asyncio
    from citecast.config import settings

    runtime = _runtime()
    try:
        asyncio.run(runtime.worker.run_forever(interval or settings.worker_interval_seconds))
    except KeyboardInterrupt:
        logger.info("worker_interrupted", worker_id=runtime.worker.worker_id)


@app.command("add-file")
def add_file(
    project_id: str = typer.Option(..., help="Project UUID"),
    path: str = typer.Option(..., help="File to upload"),
    mime_type: str = typer.Option(None, help="MIME type (guessed from the extension when omitted)"),
):
    """Add a file source to a project and queue its extraction."""
    import mimetypes
    from pathlib import Path
    from uuid import UUID
    from citecast.core.errors import ServiceError

    file_path = Path(path)
    if not file_path.exists():
        logger.error("file_not_found", path=path)
        raise typer.Exit(code=1)

    mime = mime_type or mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
    runtime = _runtime()
    try:
        source = runtime.projects.add_file_source(UUID(project_id), file_path.name, mime, file_path.read_bytes())
    except ServiceError as e:
        print(f"Error: {e}")
        raise typer.Exit(code=1)
    print(f"Source {source.id} queued for extraction ({mime}).")


if __name__ == "__main__":
    app()
