# src/nodelisting/apps/cli/commands/nodes.py
from __future__ import annotations
import asyncio
import json

import typer
from rich import print
from rich.table import Table

from nodelisting.services.bootstrap import get_service
from nodelisting.services.errors import ListingError

app = typer.Typer(help="Управление записями реестра")


def _fail(e: ListingError) -> None:
    print(f"[red]{e.error}[/red]" + (f": {e.hint}" if e.hint else ""))
    raise typer.Exit(1)


@app.command("list")
def list_cmd(
    include_offline: bool = typer.Option(False, "--all", "-a", help="Включая offline"),
    as_json: bool = typer.Option(False, "--json", help="Вывод в JSON"),
):
    nodes = get_service().announcer.list_nodes(include_offline=include_offline)
    if as_json:
        typer.echo(json.dumps({"total": len(nodes), "nodes": [n.to_public() for n in nodes]}, ensure_ascii=False))
        return
    if not nodes:
        print("[yellow]No nodes registered.[/yellow]")
        return
    table = Table(title=f"Nodes ({len(nodes)})")
    for col in ("domain", "name", "version", "tracks", "users", "online", "down since"):
        table.add_column(col)
    for n in nodes:
        table.add_row(
            n.domain,
            n.name,
            n.version,
            str(n.track_count),
            str(n.user_count),
            "[green]yes[/green]" if n.is_online else "[red]no[/red]",
            n.down_since.isoformat() if n.down_since else "",
        )
    print(table)


@app.command("show")
def show_cmd(domain: str = typer.Argument(..., help="Домен ноды")):
    try:
        node = get_service().announcer.get_node(domain)
    except ListingError as e:
        _fail(e)
    typer.echo(json.dumps(node.to_public(), ensure_ascii=False, indent=2))


@app.command("remove")
def remove_cmd(
    domain: str = typer.Argument(..., help="Домен ноды"),
    token: str = typer.Option(..., "--token", help="Токен, выданный при регистрации"),
):
    try:
        clean = get_service().announcer.remove(domain, token)
    except ListingError as e:
        _fail(e)
    print(f"[green]removed[/green] {clean}")


@app.command("stats")
def stats_cmd():
    typer.echo(json.dumps(get_service().announcer.stats()))


@app.command("sweep")
def sweep_cmd():
    """Один цикл проверки всех нод (без фонового планировщика)."""
    report = asyncio.run(get_service().sweeper.run_once())
    typer.echo(json.dumps(report.as_dict()))
