from urllib.parse import unquote

import pytest

from catering.ordering import Cart, build_concierge_link, build_order_link, build_order_message

from conftest import make_item, make_restaurant


@pytest.fixture
def bistro():
    return make_restaurant("Bistro", [make_item("Salmon", 25, weight=200), make_item("Bread", 4)])


@pytest.fixture
def grill():
    return make_restaurant("Grill", [make_item("Burger", 20)])


def test_add_bumps_quantity(bistro):
    cart = Cart()
    cart.add(bistro, bistro.menu_items[0])
    cart.add(bistro, bistro.menu_items[0])

    assert len(cart) == 1
    assert cart.quantity_of(bistro.id, bistro.menu_items[0].id) == 2
    assert cart.total_items == 2


def test_update_quantity_removes_at_zero(bistro):
    cart = Cart()
    salmon = bistro.menu_items[0]
    cart.add(bistro, salmon)

    cart.update_quantity(bistro.id, salmon.id, 2)
    assert cart.quantity_of(bistro.id, salmon.id) == 3

    cart.update_quantity(bistro.id, salmon.id, -3)
    assert len(cart) == 0


def test_remove_and_clear(bistro):
    cart = Cart()
    for item in bistro.menu_items:
        cart.add(bistro, item)

    cart.remove(bistro.id, bistro.menu_items[0].id)
    assert [line.menu_item.name for line in cart.items] == ["Bread"]

    cart.clear()
    assert cart.total_price == 0


def test_totals_and_grouping(bistro, grill):
    cart = Cart()
    cart.add(bistro, bistro.menu_items[0])
    cart.add(grill, grill.menu_items[0])
    cart.add(bistro, bistro.menu_items[1])
    cart.update_quantity(bistro.id, bistro.menu_items[1].id, 1)

    assert cart.total_price == 25 + 20 + 8
    groups = cart.grouped_by_restaurant()
    assert list(groups) == [bistro.id, grill.id]
    assert [line.menu_item.name for line in groups[bistro.id].items] == ["Salmon", "Bread"]


def test_order_message(bistro, grill):
    cart = Cart()
    cart.add(bistro, bistro.menu_items[0])
    cart.add(bistro, bistro.menu_items[0])
    cart.add(grill, grill.menu_items[0])

    message = build_order_message(cart)

    assert "*Bistro*\n• 2x Salmon (200g) - $50.00" in message
    assert "*Grill*\n• 1x Burger - $20.00" in message
    assert message.endswith("*Total: $70.00*")


def test_order_link(bistro):
    cart = Cart()
    cart.add(bistro, bistro.menu_items[1])

    link = build_order_link(cart, "971500000000")

    assert link.startswith("https://wa.me/971500000000?text=")
    assert unquote(link.split("text=", 1)[1]) == build_order_message(cart)
    assert " " not in link and "\n" not in link


def test_empty_cart_has_no_link():
    with pytest.raises(ValueError):
        build_order_link(Cart())


def test_concierge_link():
    link = build_concierge_link("Tasting menu for 6 guests on Friday")
    assert "Tasting%20menu%20for%206%20guests" in link

    with pytest.raises(ValueError):
        build_concierge_link("   ")
    with pytest.raises(ValueError):
        build_concierge_link("fish")
