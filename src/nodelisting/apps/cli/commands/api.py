# src/nodelisting/apps/cli/commands/api.py
from typing import Optional

import typer
import uvicorn

from nodelisting.services.bootstrap import get_service

app = typer.Typer(help="HTTP API реестра")


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="По умолчанию LISTING_HOST или 0.0.0.0"),
    port: Optional[int] = typer.Option(None, "--port", help="По умолчанию PORT/LISTING_PORT или 3333"),
    reload: bool = typer.Option(False, "--reload", help="Для разработки"),
):
    """Запустить HTTP API (FastAPI) вместе с фоновым sweeper."""
    settings = get_service().settings
    uvicorn.run(
        "nodelisting.apps.api.server:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    app()
