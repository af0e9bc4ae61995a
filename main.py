import logging

from fastapi import Depends, FastAPI, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from config import Settings
from wiki_pages import routes
from wiki_pages.database import get_db
from wiki_pages.errors import MethodNotAllowed, WikiError
from wiki_pages.views import dispatch

logger = logging.getLogger(__name__)

settings = Settings()

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

app = FastAPI(title=settings.app_name, docs_url=None, redoc_url=None, openapi_url=None)


@app.exception_handler(WikiError)
async def wiki_error_handler(request: Request, exc: WikiError):
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc
        )
        return PlainTextResponse("Internal Server Error", status_code=500)

    headers = None
    if isinstance(exc, MethodNotAllowed):
        headers = {"Allow": ", ".join(exc.allowed)}
        body = "Method Not Allowed"
    elif exc.status_code == 404:
        body = "Not Found"
    else:
        body = f"Bad Request: {exc}"
    return PlainTextResponse(body, status_code=exc.status_code, headers=headers)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(
        "%s %s failed unexpectedly", request.method, request.url.path, exc_info=exc
    )
    return PlainTextResponse("Internal Server Error", status_code=500)


@app.api_route("/{path:path}", methods=ALL_METHODS, include_in_schema=False)
async def wiki(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Every request goes through here; the wiki does its own routing so that
    the same route type is used for dispatch and for building links.
    """
    raw_path = request.scope.get("raw_path") or request.scope["path"].encode("utf-8")
    route = routes.parse(routes.decode_path(raw_path))
    return await dispatch(request, route, db)
