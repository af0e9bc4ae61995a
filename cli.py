import asyncio
import logging
from pathlib import Path

import aiohttp
import typer
from rich import print as rprint
from rich.logging import RichHandler
from rich.panel import Panel
from rich.text import Text

from config import Settings
from wiki_pages import lib, routes
from wiki_pages.database import SessionLocal, init_db
from wiki_pages.errors import WikiError

app = typer.Typer()

settings = Settings()

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

VERBOSITY_LEVELS = [logging.ERROR, logging.WARNING, logging.INFO, logging.DEBUG, TRACE]


def configure_logging(verbosity: int) -> None:
    level = VERBOSITY_LEVELS[min(verbosity, len(VERBOSITY_LEVELS) - 1)]
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True)],
        force=True,
    )
    if verbosity > 4:
        print_test_logging()


def print_test_logging() -> None:
    logger = logging.getLogger(__name__)
    logger.log(TRACE, "logger initialized - trace check")
    logger.debug("logger initialized - debug check")
    logger.info("logger initialized - info check")
    logger.warning("logger initialized - warn check")
    logger.error("logger initialized - error check")


@app.command()
def serve(
    host: str = settings.host,
    port: int = settings.port,
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Repeat to log more"),
):
    """
    Create missing tables and serve the wiki over HTTP.
    """
    import uvicorn

    configure_logging(verbose)
    asyncio.run(init_db())
    uvicorn.run("main:app", host=host, port=port, log_config=None)


@app.command("init-db")
def init():
    """Create all tables directly from the models"""
    asyncio.run(init_db())
    rprint("[green]Database tables created[/green]")


@app.command()
def db_upgrade():
    """Run database migrations"""
    from alembic.config import Config
    from alembic import command

    alembic_cfg = Config("alembic.ini")
    command.upgrade(alembic_cfg, "head")
    rprint("[green]Database migrations completed successfully[/green]")


@app.command()
def db_downgrade():
    """Downgrade database by one revision"""
    from alembic.config import Config
    from alembic import command

    alembic_cfg = Config("alembic.ini")
    command.downgrade(alembic_cfg, "-1")
    rprint("[yellow]Database downgraded by one revision[/yellow]")


async def _list_pages():
    async with SessionLocal() as db:
        return await lib.list_documents(db)


@app.command()
def list_pages():
    """
    List all wiki pages, most recently modified first.
    """
    try:
        documents = asyncio.run(_list_pages())
    except WikiError as e:
        rprint(f"[red]Error listing pages:[/red] {str(e)}")
        raise typer.Exit(1)

    if not documents:
        rprint("[yellow]No wiki pages found in the database.[/yellow]")
        return

    rprint("[blue]Wiki Pages:[/blue]")
    for document in documents:
        last_modified = document.last_modified.strftime("%Y-%m-%d %H:%M:%S")
        rprint(
            f"[green]• {document.name}[/green] "
            f"(revision {document.current_revision_id}, modified {last_modified})"
        )

    rprint(f"\nTotal pages: {len(documents)}")


async def _history(name: str, limit: int):
    async with SessionLocal() as db:
        return await lib.fetch_history(db, name, limit)


@app.command()
def history(name: str, limit: int = settings.history_limit):
    """
    Show the revisions of a page, newest first.
    """
    try:
        records = asyncio.run(_history(name, limit))
    except WikiError as e:
        rprint(f"[red]Error reading history:[/red] {str(e)}")
        raise typer.Exit(1)

    rprint(f"[blue]History of {name}[/blue] (showing {len(records)} revisions)")
    for record in records:
        created_at = record.created_at.strftime("%Y-%m-%d %H:%M:%S")
        rprint(
            f"[cyan]{record.revision_id:>8}[/cyan] | {created_at} | {record.created_by}"
        )


async def _show(name: str, rev: int | None):
    async with SessionLocal() as db:
        if rev is None:
            return await lib.fetch_current(db, name)
        return await lib.fetch_revision(db, name, rev)


@app.command()
def show(name: str, rev: int | None = None):
    """
    Print the raw text of a page, or of one of its revisions with --rev.
    """
    try:
        revision = asyncio.run(_show(name, rev))
    except WikiError as e:
        rprint(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(1)

    modified_at = revision.modified_at.strftime("%Y-%m-%d %H:%M:%S")
    text = Text(revision.content, justify="left")
    panel = Panel(
        text,
        title=f"{name} (revision {revision.revision_id})",
        subtitle=f"{revision.modified_by}, {modified_at}",
        width=100,
        padding=(1, 2),
    )
    rprint(panel)


async def _put(name: str, author: str, content: str) -> int:
    async with SessionLocal() as db:
        return await lib.append_revision(db, name, author, content)


@app.command()
def put(name: str, file: Path, author: str = settings.anonymous_author):
    """
    Store the contents of FILE as a new revision of a page.
    """
    content = file.read_text(encoding="utf-8")
    try:
        revision_id = asyncio.run(_put(name, author, content))
    except WikiError as e:
        rprint(f"[red]Error storing page:[/red] {str(e)}")
        raise typer.Exit(1)

    rprint(f"[green]Stored revision {revision_id} of '{name}'[/green]")


async def push_page(base_url: str, name: str, content: str) -> str:
    """
    PUT a page to a running wiki server.

    Returns:
        str: the location the server redirected to
    """
    url = base_url.rstrip("/") + routes.href(routes.view(name))
    async with aiohttp.ClientSession() as session:
        async with session.put(
            url, data=content.encode("utf-8"), allow_redirects=False
        ) as response:
            if response.status != 302:
                raise RuntimeError(f"PUT {url} failed with status {response.status}")
            return response.headers["Location"]


@app.command()
def push(
    name: str,
    file: Path,
    url: str = f"http://{settings.host}:{settings.port}",
):
    """
    Send the contents of FILE to a running wiki server as a new revision.
    """
    content = file.read_text(encoding="utf-8")
    try:
        location = asyncio.run(push_page(url, name, content))
    except (aiohttp.ClientError, RuntimeError) as e:
        rprint(f"[red]Error pushing page:[/red] {str(e)}")
        raise typer.Exit(1)

    rprint(f"[green]Pushed '{name}'[/green] -> {location}")


if __name__ == "__main__":
    app()
