import asyncio
import json

import httpx
import pytest

from catering.errors import ConflictError, NoCredentialsError, SheetsRequestError
from catering.importer.sheet_import import SheetImporter
from catering.importer.sheets import SpreadsheetFetcher
from catering.store.database import DocumentStore

from conftest import GIST_ID, FakeGist, document_with, make_item, make_restaurant

SPREADSHEET_ID = "1AbCdEfGhIjKlMnOp"
SHEET_URL = f"https://docs.google.com/spreadsheets/d/{SPREADSHEET_ID}/edit#gid=0"


class FakeFetcher(SpreadsheetFetcher):
    def __init__(self, tabs):
        super().__init__(api_key="key", transport=httpx.MockTransport(self.handler))
        self.tabs = tabs
        self.on_fetch = None

    def handler(self, request):
        if self.on_fetch:
            self.on_fetch()
        path = request.url.path
        if path.endswith(f"/{SPREADSHEET_ID}"):
            return httpx.Response(200, json={"sheets": [{"properties": {"title": t}} for t in self.tabs]})
        title = path.rsplit("/values/", 1)[1]
        return httpx.Response(200, json={"values": self.tabs[title]})


def run(coro):
    return asyncio.run(coro)


def test_import_writes_once(store, gist, backups):
    fetcher = FakeFetcher({
        "Test Bistro": [["Item Name", "Desc", "Price", "Cat"], ["Salmon", "Fresh catch", "25", "Mains"]],
        "Grill": [["Burger", "", "20"]],
    })

    result = run(SheetImporter(store, fetcher, backups=backups).run(SHEET_URL))

    assert result.added_count == 2
    assert gist.writes == 1
    assert gist.document["version"] == 2
    assert [r["name"] for r in gist.document["restaurants"]] == ["Test Bistro", "Grill"]
    assert [e.action for e in backups.list_all()] == ["create", "create"]


def test_second_import_changes_nothing(store, gist):
    fetcher = FakeFetcher({"Bistro": [["Soup", "", "10"]]})
    importer = SheetImporter(store, fetcher)

    run(importer.run(SHEET_URL))
    second = run(importer.run(SHEET_URL))

    assert not second.has_changes
    assert gist.writes == 1
    assert gist.document["version"] == 2


def test_import_merges_into_existing(local, backups):
    gist = FakeGist(document_with(
        make_restaurant("Bistro", [make_item("Soup", 10, id="soup"), make_item("Bread", 4, id="bread")]),
        make_restaurant("Untouched"),
        version=7,
    ))
    store = DocumentStore(local, backups=backups, document_id=GIST_ID, access_token="t", transport=gist.transport())
    fetcher = FakeFetcher({"Bistro": [["Soup", "", "12"], ["Cake", "", "8"]]})

    run(SheetImporter(store, fetcher, backups=backups).run(SPREADSHEET_ID))

    document = gist.document
    assert document["version"] == 8
    assert [r["name"] for r in document["restaurants"]] == ["Bistro", "Untouched"]
    items = {i["name"]: i for i in document["restaurants"][0]["menuItems"]}
    assert items["Soup"]["price"] == 12 and items["Soup"]["id"] == "soup"
    assert "Bread" in items and "Cake" in items


def test_dry_run_writes_nothing(store, gist, backups):
    fetcher = FakeFetcher({"Bistro": [["Soup", "", "10"]]})

    result = run(SheetImporter(store, fetcher, backups=backups).run(SHEET_URL, dry_run=True))

    assert result.added_count == 1
    assert gist.writes == 0
    assert backups.list_all() == []


def test_import_requires_credentials(local, gist):
    store = DocumentStore(local, document_id=GIST_ID, transport=gist.transport())
    with pytest.raises(NoCredentialsError):
        run(SheetImporter(store, FakeFetcher({})).run(SHEET_URL))


def test_unrecognised_link(store):
    with pytest.raises(SheetsRequestError):
        run(SheetImporter(store, FakeFetcher({})).run("https://example.com/not a sheet"))


def test_concurrent_write_is_detected(store, gist):
    fetcher = FakeFetcher({"Bistro": [["Soup", "", "10"]]})
    importer = SheetImporter(store, fetcher)
    run(store.get_data())

    def someone_else_writes():
        gist.content = json.dumps(document_with(make_restaurant("Other"), version=9))

    # the cached version 1 is reconciled while the remote moves to version 9
    fetcher.on_fetch = someone_else_writes

    with pytest.raises(ConflictError):
        run(importer.run(SHEET_URL))
    assert gist.writes == 0
