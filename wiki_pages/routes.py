"""
Typed routes for the wiki URL space.

A request path is parsed into one of ``Root``, ``Login`` or ``WikiPage``; a
``WikiPage`` carries the page name and the requested subview. ``render`` is
the exact inverse of ``parse`` and is used to build every link the server
emits, so that ``parse(render(route)) == route`` for any route that can be
constructed.
"""

import logging
import re
from dataclasses import dataclass
from typing import Union
from urllib.parse import quote, unquote_to_bytes

from wiki_pages.errors import EncodingError, NotFound

logger = logging.getLogger(__name__)

WIKI_PREFIX = "/wiki/"
MAX_REVISION_ID = 2**63 - 1

_REVISION_ID_RE = re.compile(r"[0-9]+")


def _check_revision_id(value: int) -> None:
    if not 0 <= value <= MAX_REVISION_ID:
        raise ValueError(f"revision id out of range: {value}")


@dataclass(frozen=True)
class View:
    pass


@dataclass(frozen=True)
class Edit:
    pass


@dataclass(frozen=True)
class History:
    pass


@dataclass(frozen=True)
class Revision:
    id: int

    def __post_init__(self):
        _check_revision_id(self.id)


@dataclass(frozen=True)
class Diff:
    first: int
    second: int

    def __post_init__(self):
        _check_revision_id(self.first)
        _check_revision_id(self.second)


Subview = Union[View, Edit, History, Revision, Diff]


@dataclass(frozen=True)
class Root:
    pass


@dataclass(frozen=True)
class Login:
    pass


@dataclass(frozen=True)
class WikiPage:
    name: str
    subview: Subview = View()

    def __post_init__(self):
        if not self.name:
            raise ValueError("page name must not be empty")
        if "/" in self.name:
            raise ValueError(f"page name must not contain '/': {self.name!r}")


Route = Union[Root, Login, WikiPage]


def view(name: str) -> WikiPage:
    return WikiPage(name, View())


def edit(name: str) -> WikiPage:
    return WikiPage(name, Edit())


def history(name: str) -> WikiPage:
    return WikiPage(name, History())


def revision(name: str, revision_id: int) -> WikiPage:
    return WikiPage(name, Revision(revision_id))


def diff(name: str, first: int, second: int) -> WikiPage:
    return WikiPage(name, Diff(first, second))


def _parse_revision_id(segment: str) -> int:
    if not _REVISION_ID_RE.fullmatch(segment):
        raise NotFound(f"invalid revision id: {segment!r}")
    value = int(segment)
    if value > MAX_REVISION_ID:
        raise NotFound(f"revision id out of range: {segment!r}")
    return value


def _parse_subview(segments: list[str]) -> Subview:
    match segments:
        case []:
            return View()
        case ["edit"]:
            return Edit()
        case ["history"]:
            return History()
        case ["rev", rev]:
            return Revision(_parse_revision_id(rev))
        case ["diff", revs]:
            first, sep, second = revs.partition("-")
            if not sep:
                raise NotFound(f"malformed diff range: {revs!r}")
            return Diff(_parse_revision_id(first), _parse_revision_id(second))
    raise NotFound(f"unknown subview: {'/'.join(segments)!r}")


def parse(path: str) -> Route:
    """
    Parse a percent-decoded request path into a route.

    Raises:
        NotFound: if the path does not name a route
    """
    if path == "/":
        return Root()
    if path == "/login":
        return Login()
    if not path.startswith(WIKI_PREFIX):
        raise NotFound(f"no route for {path!r}")

    name, *segments = path[len(WIKI_PREFIX) :].split("/")
    if not name:
        raise NotFound("empty page name")
    route = WikiPage(name, _parse_subview(segments))
    logger.debug("parsed %r as %r", path, route)
    return route


def render(route: Route) -> str:
    """Canonical path for a route."""
    match route:
        case Root():
            return "/"
        case Login():
            return "/login"
        case WikiPage(name=name, subview=View()):
            return f"{WIKI_PREFIX}{name}"
        case WikiPage(name=name, subview=Edit()):
            return f"{WIKI_PREFIX}{name}/edit"
        case WikiPage(name=name, subview=History()):
            return f"{WIKI_PREFIX}{name}/history"
        case WikiPage(name=name, subview=Revision(id=rev)):
            return f"{WIKI_PREFIX}{name}/rev/{rev}"
        case WikiPage(name=name, subview=Diff(first=first, second=second)):
            return f"{WIKI_PREFIX}{name}/diff/{first}-{second}"
    raise TypeError(f"not a route: {route!r}")


def decode_path(raw_path: bytes) -> str:
    """
    Percent-decode a raw request path.

    Raises:
        EncodingError: if the decoded bytes are not valid UTF-8
    """
    try:
        return unquote_to_bytes(raw_path).decode("utf-8")
    except UnicodeDecodeError as e:
        raise EncodingError(f"path is not valid UTF-8: {raw_path!r}") from e


def href(route: Route) -> str:
    """Percent-encoded form of ``render(route)``, for links and Location headers."""
    return quote(render(route), safe="/")
