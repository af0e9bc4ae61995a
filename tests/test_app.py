import asyncio
import re

import pytest
from fastapi.testclient import TestClient

from main import app
from wiki_pages import lib, views
from wiki_pages.errors import StorageError


def revision_ids(client, name):
    response = client.get(f"/wiki/{name}/history")
    assert response.status_code == 200
    return [int(i) for i in re.findall(rf'href="/wiki/{name}/rev/(\d+)"', response.text)]


def test_put_then_view(client):
    response = client.put("/wiki/test1", content="Hello")
    assert response.status_code == 302
    assert response.headers["location"] == "/wiki/test1"

    response = client.get("/wiki/test1")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "<p>Hello</p>" in response.text
    assert 'href="/wiki/test1/edit"' in response.text
    assert 'href="/wiki/test1/history"' in response.text
    assert "Anonymous" in response.text


def test_unknown_page(client):
    response = client.get("/wiki/doesnotexist")
    assert response.status_code == 404
    assert response.text == "Not Found"


def test_diff_between_revisions(client):
    client.put("/wiki/test2", content="A")
    client.put("/wiki/test2", content="B")
    second, first = revision_ids(client, "test2")
    assert first < second

    response = client.get(f"/wiki/test2/diff/{first}-{second}")
    assert response.status_code == 200
    assert "-A" in response.text
    assert "+B" in response.text
    assert f'href="/wiki/test2/rev/{first}"' in response.text
    assert f'href="/wiki/test2/rev/{second}"' in response.text


def test_diff_with_itself(client):
    client.put("/wiki/same", content="line one\nline two")
    (rev,) = revision_ids(client, "same")

    response = client.get(f"/wiki/same/diff/{rev}-{rev}")
    assert response.status_code == 200
    assert 'class="gd"' not in response.text
    assert 'class="gi"' not in response.text


def test_diff_with_missing_revision(client):
    client.put("/wiki/test2", content="A")
    (rev,) = revision_ids(client, "test2")

    assert client.get(f"/wiki/test2/diff/{rev}-999999").status_code == 404
    assert client.get(f"/wiki/test2/diff/999999-{rev}").status_code == 404


def test_unknown_revision(client):
    client.put("/wiki/test3", content="content")
    assert client.get("/wiki/test3/rev/999999").status_code == 404


def test_old_revision(client):
    client.put("/wiki/page", content="first text")
    client.put("/wiki/page", content="second text")
    _, first = revision_ids(client, "page")

    response = client.get(f"/wiki/page/rev/{first}")
    assert response.status_code == 200
    assert "first text" in response.text
    assert "second text" not in response.text


def test_revision_of_other_page(client):
    client.put("/wiki/mine", content="mine")
    client.put("/wiki/theirs", content="secret")
    (foreign,) = revision_ids(client, "theirs")

    assert client.get(f"/wiki/mine/rev/{foreign}").status_code == 404


def test_history_links_diffs(client):
    for text in ("one", "two", "three"):
        client.put("/wiki/hist", content=text)
    third, second, first = revision_ids(client, "hist")

    response = client.get("/wiki/hist/history")
    assert f'href="/wiki/hist/diff/{second}-{third}"' in response.text
    assert f'href="/wiki/hist/diff/{first}-{second}"' in response.text


def test_history_of_unknown_page(client):
    assert client.get("/wiki/nothing/history").status_code == 404


def test_edit_form_escapes_raw_text(client):
    client.put("/wiki/raw", content="# Title\n<script>alert(1)</script>")

    response = client.get("/wiki/raw/edit")
    assert response.status_code == 200
    assert "# Title" in response.text
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in response.text
    assert "<script>alert(1)</script>" not in response.text


def test_edit_unknown_page(client):
    assert client.get("/wiki/nothing/edit").status_code == 404


def test_put_on_any_subview_redirects_to_view(client):
    response = client.put("/wiki/sub/history", content="text")
    assert response.status_code == 302
    assert response.headers["location"] == "/wiki/sub"
    assert "text" in client.get("/wiki/sub").text


def test_delete_not_allowed(client):
    client.put("/wiki/test1", content="Hello")
    response = client.delete("/wiki/test1")
    assert response.status_code == 405
    assert response.headers["allow"] == "GET, PUT"


@pytest.mark.parametrize("method", ["POST", "PATCH"])
def test_other_methods_not_allowed(client, method):
    assert client.request(method, "/wiki/test1/edit").status_code == 405


def test_root_redirects_to_login(client):
    response = client.get("/")
    assert response.status_code == 302
    assert response.headers["location"] == "/login"


@pytest.mark.parametrize("method", ["GET", "POST"])
def test_login_redirects_to_default_page(client, method):
    response = client.request(method, "/login")
    assert response.status_code == 302
    assert response.headers["location"] == f"/wiki/{views.settings.default_page}"


@pytest.mark.parametrize(
    "path", ["/nothing", "/wiki/", "/wiki/page/bogus", "/wiki/page/rev/abc", "/wiki/page/diff/1"]
)
def test_unroutable_paths(client, path):
    assert client.get(path).status_code == 404
    assert client.put(path, content="x").status_code == 404


def test_non_ascii_page_name(client):
    response = client.put("/wiki/Café", content="au lait")
    assert response.status_code == 302
    assert response.headers["location"] == "/wiki/Caf%C3%A9"

    response = client.get(response.headers["location"])
    assert response.status_code == 200
    assert "au lait" in response.text


def test_invalid_utf8_body(client):
    response = client.put("/wiki/bad", content=b"\xff\xfe")
    assert response.status_code == 400
    assert client.get("/wiki/bad").status_code == 404


def test_invalid_utf8_path(client):
    assert client.get("/wiki/%FF").status_code == 400


def test_storage_error_is_opaque(client, monkeypatch):
    async def broken(db, name):
        raise StorageError("connection refused by db.internal:5432")

    monkeypatch.setattr(lib, "fetch_current", broken)

    response = client.get("/wiki/anything")
    assert response.status_code == 500
    assert response.text == "Internal Server Error"


def test_unexpected_error_is_opaque(client, monkeypatch):
    async def broken(db, name):
        raise RuntimeError("boom")

    monkeypatch.setattr(lib, "fetch_current", broken)

    client = TestClient(app, raise_server_exceptions=False)
    response = client.get("/wiki/anything")
    assert response.status_code == 500
    assert response.text == "Internal Server Error"


SCRIPT = "<script>alert(1)</script>"


def test_stored_html_is_escaped_everywhere(client):
    client.put("/wiki/xss", content="safe")
    client.put("/wiki/xss", content=f"hi\n\n{SCRIPT}\n")
    second, first = revision_ids(client, "xss")

    for path in ("/wiki/xss", f"/wiki/xss/rev/{second}", f"/wiki/xss/diff/{first}-{second}"):
        response = client.get(path)
        assert response.status_code == 200
        assert SCRIPT not in response.text
        assert "alert(1)" in response.text


def test_storage_timeout_is_opaque(client, monkeypatch):
    async def slow(db, name):
        await asyncio.sleep(5)

    monkeypatch.setattr(views.settings, "storage_timeout", 0.01)
    monkeypatch.setattr(lib, "fetch_current", slow)

    response = client.get("/wiki/anything")
    assert response.status_code == 500
    assert response.text == "Internal Server Error"
