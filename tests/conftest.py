"""
Shared fixtures: a local store in a temp dir and an in-memory Gist API.
"""
import json

import httpx
import pytest

from catering.history.backup import BackupRecorder
from catering.models import MenuItem, Restaurant
from catering.store.database import DATA_FILENAME, DocumentStore
from catering.store.local import LocalStore

GIST_ID = "gist123"
TOKEN = "ghp_testtoken"


class FakeClock:
    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int):
        self.now += ms


class FakeGist:
    """Minimal GitHub Gists API holding one database file"""

    def __init__(self, document=None, gist_id: str = GIST_ID):
        self.gist_id = gist_id
        self.content = json.dumps(document if document is not None else {
            "restaurants": [], "lastUpdated": 1, "version": 1,
        })
        self.requests = []
        self.reads = 0
        self.writes = 0
        self.fail_status = None

    @property
    def document(self):
        return json.loads(self.content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_status:
            return httpx.Response(self.fail_status)

        path = request.url.path
        if request.method == "POST" and path == "/gists":
            body = json.loads(request.content)
            self.content = body["files"][DATA_FILENAME]["content"]
            return httpx.Response(201, json={"id": "newgist", "html_url": "https://gist.github.com/newgist"})

        if path != f"/gists/{self.gist_id}":
            return httpx.Response(404, json={"message": "Not Found"})

        if request.method == "GET":
            self.reads += 1
            return httpx.Response(200, json={
                "id": self.gist_id,
                "files": {DATA_FILENAME: {"content": self.content, "truncated": False}},
            })
        if request.method == "PATCH":
            self.writes += 1
            body = json.loads(request.content)
            self.content = body["files"][DATA_FILENAME]["content"]
            return httpx.Response(200, json={"id": self.gist_id})
        return httpx.Response(405)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_item(name: str, price: float = 10.0, **fields) -> MenuItem:
    return MenuItem(id=fields.pop("id", f"item-{name.lower().replace(' ', '-')}"), name=name, price=price, **fields)


def make_restaurant(name: str, items=(), **fields) -> Restaurant:
    items = list(items)
    return Restaurant(
        id=fields.pop("id", f"rest-{name.lower().replace(' ', '-')}"),
        name=name,
        menu_items=items,
        categories=list(dict.fromkeys(i.category for i in items)),
        **fields,
    )


def document_with(*restaurants, version: int = 1) -> dict:
    return {
        "restaurants": [r.to_document() for r in restaurants],
        "lastUpdated": 1_600_000_000_000,
        "version": version,
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def local(tmp_path):
    return LocalStore(str(tmp_path / "data"))


@pytest.fixture
def backups(local):
    return BackupRecorder(local)


@pytest.fixture
def gist():
    return FakeGist()


@pytest.fixture
def store(local, backups, gist, clock):
    return DocumentStore(
        local,
        backups=backups,
        document_id=GIST_ID,
        access_token=TOKEN,
        transport=gist.transport(),
        clock=clock,
    )
