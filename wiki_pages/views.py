"""
Request dispatch for the wiki.

``dispatch`` takes a parsed route and picks the handler for it based on the
route kind and the HTTP method. Handlers read and write through
``wiki_pages.lib`` and render HTML with the Jinja2 templates under
``web/templates``.
"""

import asyncio
import logging
from pathlib import Path

from fastapi import Request
from fastapi.responses import RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from sqlalchemy.ext.asyncio import AsyncSession

from config import Settings
from wiki_pages import lib, routes
from wiki_pages.errors import EncodingError, MethodNotAllowed, StorageError
from wiki_pages.render import diff_markdown, highlight_css, render_markdown
from wiki_pages.routes import (
    Diff,
    Edit,
    History,
    Login,
    Revision,
    Root,
    View,
    WikiPage,
)

logger = logging.getLogger(__name__)

settings = Settings()

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "web" / "templates"

templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
templates.env.filters["href"] = routes.href
templates.env.globals["highlight_css"] = highlight_css()
templates.env.globals["app_name"] = settings.app_name

WIKI_METHODS = ("GET", "PUT")


async def _bounded(awaitable):
    """Await a storage call, giving up after ``settings.storage_timeout`` seconds."""
    try:
        return await asyncio.wait_for(awaitable, settings.storage_timeout)
    except asyncio.TimeoutError as e:
        raise StorageError("storage call timed out") from e


def redirect(route: routes.Route) -> RedirectResponse:
    return RedirectResponse(routes.href(route), status_code=302)


async def dispatch(request: Request, route: routes.Route, db: AsyncSession) -> Response:
    match route:
        case Root():
            return redirect(Login())
        case Login():
            return redirect(routes.view(settings.default_page))
        case WikiPage():
            return await serve_wiki_page(request, route, db)
    raise TypeError(f"not a route: {route!r}")


async def serve_wiki_page(request: Request, page: WikiPage, db: AsyncSession) -> Response:
    if request.method == "GET":
        return await serve_wiki_page_get(request, page, db)
    if request.method == "PUT":
        return await serve_wiki_page_put(request, page, db)
    raise MethodNotAllowed(request.method, WIKI_METHODS)


async def serve_wiki_page_get(request: Request, page: WikiPage, db: AsyncSession) -> Response:
    logger.debug("rendering %r", page)
    match page.subview:
        case View():
            current = await _bounded(lib.fetch_current(db, page.name))
            return _render_view(request, page, current)
        case Revision(id=revision_id):
            current = await _bounded(lib.fetch_revision(db, page.name, revision_id))
            return _render_view(request, page, current)
        case Edit():
            current = await _bounded(lib.fetch_current(db, page.name))
            return templates.TemplateResponse(
                request=request,
                name="wiki/edit.html",
                context={
                    "page_title": page.name,
                    "document_data": current.content,
                    "save_link": routes.view(page.name),
                    "view_link": routes.view(page.name),
                },
            )
        case History():
            return await serve_wiki_page_history_get(request, page, db)
        case Diff(first=first, second=second):
            return await serve_wiki_page_diff_get(request, page, db, first, second)
    raise TypeError(f"not a subview: {page.subview!r}")


def _render_view(request: Request, page: WikiPage, current) -> Response:
    return templates.TemplateResponse(
        request=request,
        name="wiki/view.html",
        context={
            "page_title": page.name,
            "revision_id": current.revision_id,
            "last_modified_at": current.modified_at,
            "last_modified_by": current.modified_by,
            "history_link": routes.history(page.name),
            "edit_link": routes.edit(page.name),
            "view_link": routes.view(page.name),
            "is_old_revision": isinstance(page.subview, Revision),
            "rendered": render_markdown(current.content),
        },
    )


async def serve_wiki_page_history_get(
    request: Request, page: WikiPage, db: AsyncSession
) -> Response:
    records = await _bounded(lib.fetch_history(db, page.name, settings.history_limit))

    history_records = []
    # records are newest first, so each row diffs against the one after it
    for record, older in zip(records, records[1:] + [None]):
        history_records.append(
            {
                "record": record,
                "link": routes.revision(page.name, record.revision_id),
                "diff_link": (
                    routes.diff(page.name, older.revision_id, record.revision_id)
                    if older is not None
                    else None
                ),
            }
        )

    return templates.TemplateResponse(
        request=request,
        name="wiki/history.html",
        context={
            "page_title": page.name,
            "view_link": routes.view(page.name),
            "history_records": history_records,
        },
    )


async def serve_wiki_page_diff_get(
    request: Request, page: WikiPage, db: AsyncSession, first_id: int, second_id: int
) -> Response:
    first = await _bounded(lib.fetch_revision(db, page.name, first_id))
    second = await _bounded(lib.fetch_revision(db, page.name, second_id))

    return templates.TemplateResponse(
        request=request,
        name="wiki/diff.html",
        context={
            "page_title": page.name,
            "view_link": routes.view(page.name),
            "history_link": routes.history(page.name),
            "first": first,
            "first_link": routes.revision(page.name, first.revision_id),
            "second": second,
            "second_link": routes.revision(page.name, second.revision_id),
            "rendered": render_markdown(diff_markdown(first.content, second.content)),
        },
    )


async def serve_wiki_page_put(request: Request, page: WikiPage, db: AsyncSession) -> Response:
    body = await request.body()
    try:
        document_data = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise EncodingError("request body is not valid UTF-8") from e

    await _bounded(
        lib.append_revision(db, page.name, settings.anonymous_author, document_data)
    )
    return redirect(routes.view(page.name))
