import asyncio
import json

from catering.models import DatabaseDocument
from catering.store.database import DocumentStore
from catering.store.repair import escape_stray_quotes, repair_database, repair_text

from conftest import GIST_ID, TOKEN, FakeGist

BROKEN = """{
  "restaurants": [
    {
      "id": "r1",
      "name": "Sea\x07 Breeze",
      "description": "Fish by the sea",
      "coverImage": "/local/cover.jpg",
      "menuItems": [
        {"id": "i1", "name": "Ceviche", "price": 42, "image": "ftp://x.jpg",},
        {"id": "i2", "name": "Mystery", "price": 0},
        {"name": "Bread", "price": 4},
      ],
    },
    {"description": "no id or name"},
  ],
  "version": 3,
}"""


def run(coro):
    return asyncio.run(coro)


def make_store(local, gist, token=TOKEN):
    return DocumentStore(local, document_id=GIST_ID, access_token=token, transport=gist.transport())


def test_valid_json_is_left_alone_by_quote_fix():
    text = json.dumps({"name": "Chef's \"special\"", "tags": ["a", "b"], "nested": {"k": ""}}, indent=2)
    assert escape_stray_quotes(text) == text


def test_stray_quotes_are_escaped():
    fixed = escape_stray_quotes('{"name": "The "Best" Grill", "price": 5}')
    assert json.loads(fixed) == {"name": 'The "Best" Grill', "price": 5}


def test_repair_text_removes_trailing_commas_and_controls():
    assert json.loads(repair_text('{"a": [1, 2,], "b": "x\x01y",}')) == {"a": [1, 2], "b": "xy"}


def test_repair_round_trip(local):
    gist = FakeGist()
    gist.content = BROKEN

    report = run(repair_database(make_store(local, gist)))

    assert report.success, report.errors
    assert report.original_size == len(BROKEN)
    assert gist.writes == 1

    document = DatabaseDocument.model_validate(json.loads(gist.content))
    assert document.version == 3
    assert len(document.restaurants) == 2

    first, second = document.restaurants
    assert first.name == "Sea Breeze"
    assert first.cover_image == ""
    assert [item.name for item in first.menu_items] == ["Ceviche", "Bread"]
    assert first.menu_items[0].image == ""
    assert all(item.id and item.price > 0 for item in first.menu_items)
    assert second.id.startswith("repaired-")
    assert second.name == "Restaurant 2"

    assert any("Mystery" in error for error in report.errors)
    assert any("trailing commas" in line for line in report.fixed)


def test_dry_run_does_not_write(local):
    gist = FakeGist()
    gist.content = BROKEN

    report = run(repair_database(make_store(local, gist), write=False))

    assert report.success
    assert report.repaired_size > 0
    assert gist.writes == 0
    assert gist.content == BROKEN


def test_unrepairable_document_is_not_written(local):
    gist = FakeGist()
    gist.content = '{"restaurants": [{"name": "Half'

    report = run(repair_database(make_store(local, gist)))

    assert not report.success
    assert any("Manual intervention required" in error for error in report.errors)
    assert gist.writes == 0


def test_healthy_document_gets_defaults(local):
    gist = FakeGist({"restaurants": [{"id": "r1", "name": "Grill", "menuItems": [{"id": "i", "name": "Burger", "price": "20"}]}]})

    report = run(repair_database(make_store(local, gist)))

    assert report.success
    assert report.fixed[0] == "JSON is valid - no structural errors found"
    stored = json.loads(gist.content)
    assert stored["version"] == 1
    assert isinstance(stored["lastUpdated"], int)
    assert stored["restaurants"][0]["menuItems"][0]["price"] == 20


def test_fetch_failure_is_reported(local):
    gist = FakeGist()
    gist.fail_status = 404

    report = run(repair_database(make_store(local, gist)))

    assert not report.success
    assert report.errors[0].startswith("Failed to fetch database")


def test_write_failure_is_reported(local):
    gist = FakeGist()

    report = run(repair_database(make_store(local, gist, token=None)))

    assert not report.success
    assert report.errors[-1].startswith("Failed to save repaired database")


def test_loosely_typed_restaurant_fields_are_coerced(local):
    gist = FakeGist()
    gist.content = """{
  "restaurants": [
    {
      "id": 7,
      "name": "Harbour",
      "tags": null,
      "tastingMenuDescription": null,
      "isHidden": "yes",
      "minimumOrderAmount": 0,
      "chefServicePrice": "150",
      "waiterServicePrice": -20,
      "menuItems": [{"id": 12, "name": "Oysters", "price": 30}],
    },
  ],
  "version": 2,
}"""

    report = run(repair_database(make_store(local, gist)))

    assert report.success, report.errors
    restaurant = DatabaseDocument.model_validate(json.loads(gist.content)).restaurants[0]
    assert restaurant.id == "7"
    assert restaurant.menu_items[0].id == "12"
    assert restaurant.tags == []
    assert restaurant.tasting_menu_description == ""
    assert restaurant.is_hidden is False
    assert restaurant.minimum_order_amount is None
    assert restaurant.chef_service_price == 150
    assert restaurant.waiter_service_price is None

    assert "Converted ID of restaurant Harbour to text" in report.fixed
    assert "Replaced empty tags of Harbour with an empty list" in report.fixed
    assert "Reset invalid hidden flag of Harbour to visible" in report.fixed
    assert "Removed invalid minimumOrderAmount of Harbour" in report.fixed
    assert "Removed invalid waiterServicePrice of Harbour" in report.fixed
