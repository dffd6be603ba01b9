# src/nodelisting/apps/cli/app.py
from __future__ import annotations

from typing import Optional

from dotenv import load_dotenv, find_dotenv
import typer

# загружаем .env один раз (LISTING_DB_PATH, PORT, ...)
load_dotenv(find_dotenv(usecwd=True))

from nodelisting.services.settings import Settings
from nodelisting.services.bootstrap import init_service
from nodelisting.apps.cli.commands import api, nodes

app = typer.Typer(help="Публичный реестр нод: регистрация, heartbeat, проверка доступности")


# -------- корневой callback (composition root) --------


@app.callback()
def main(
    base_dir: Optional[str] = typer.Option(None, "--base-dir", help="Каталог данных (по умолчанию ~/.nodelisting или LISTING_BASE_DIR)"),
    db_path: Optional[str] = typer.Option(None, "--db", help="Путь к sqlite-файлу (по умолчанию LISTING_DB_PATH)"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG/INFO/WARNING"),
):
    """
    Вызывается перед любыми подкомандами: читает настройки и собирает сервис.
    """
    settings = Settings.from_sources().with_overrides(base_dir=base_dir, db_path=db_path, log_level=log_level)
    init_service(settings)


app.add_typer(nodes.app, name="nodes")
app.add_typer(api.app, name="api")


if __name__ == "__main__":
    app()
