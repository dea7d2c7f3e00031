"""
Shopping cart and the WhatsApp order link built from it.
"""
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote

from pydantic import BaseModel, Field

from .config import DEFAULT_WHATSAPP_NUMBER
from .models import MenuItem, Restaurant

WHATSAPP_URL = "https://wa.me"
ORDER_HEADER = "*MERIDIEN YACHT CATERING*\n*Order Summary*"
CONCIERGE_HEADER = "Imperial Catering Concierge Order"
CONCIERGE_FOOTER = "---\nSent via Imperial Delicious Menu"
MIN_CONCIERGE_LENGTH = 10


class CartItem(BaseModel):
    restaurant_id: str
    restaurant_name: str
    menu_item: MenuItem
    quantity: int = Field(1, gt=0)

    @property
    def line_total(self) -> float:
        return self.menu_item.price * self.quantity


class RestaurantOrder(BaseModel):
    restaurant_name: str
    items: List[CartItem] = Field(default_factory=list)


class Cart:
    """Cart lines keyed by (restaurant id, menu item id), in the order they were added"""

    def __init__(self, items: Optional[List[CartItem]] = None):
        self._items: Dict[Tuple[str, str], CartItem] = {}
        for item in items or []:
            self._items[(item.restaurant_id, item.menu_item.id)] = item

    @property
    def items(self) -> List[CartItem]:
        return list(self._items.values())

    def add(self, restaurant: Restaurant, menu_item: MenuItem) -> CartItem:
        """Add one of ``menu_item``, bumping the quantity if it is already in the cart"""
        key = (restaurant.id, menu_item.id)
        line = self._items.get(key)
        if line is None:
            line = CartItem(restaurant_id=restaurant.id, restaurant_name=restaurant.name, menu_item=menu_item)
            self._items[key] = line
        else:
            line.quantity += 1
        return line

    def update_quantity(self, restaurant_id: str, menu_item_id: str, delta: int):
        key = (restaurant_id, menu_item_id)
        line = self._items.get(key)
        if line is None:
            return
        quantity = line.quantity + delta
        if quantity > 0:
            line.quantity = quantity
        else:
            del self._items[key]

    def remove(self, restaurant_id: str, menu_item_id: str):
        self._items.pop((restaurant_id, menu_item_id), None)

    def clear(self):
        self._items.clear()

    def quantity_of(self, restaurant_id: str, menu_item_id: str) -> int:
        line = self._items.get((restaurant_id, menu_item_id))
        return line.quantity if line else 0

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self._items.values())

    @property
    def total_price(self) -> float:
        return sum(line.line_total for line in self._items.values())

    def grouped_by_restaurant(self) -> Dict[str, RestaurantOrder]:
        groups: Dict[str, RestaurantOrder] = {}
        for line in self._items.values():
            group = groups.setdefault(line.restaurant_id, RestaurantOrder(restaurant_name=line.restaurant_name))
            group.items.append(line)
        return groups

    def __len__(self):
        return len(self._items)


def _format_line(line: CartItem) -> str:
    weight = f" ({line.menu_item.weight:g}g)" if line.menu_item.weight else ""
    return f"• {line.quantity}x {line.menu_item.name}{weight} - ${line.line_total:.2f}"


def build_order_message(cart: Cart) -> str:
    """Plain-text order summary, one block per restaurant, ending with the total"""
    blocks = [ORDER_HEADER]
    for group in cart.grouped_by_restaurant().values():
        lines = [f"*{group.restaurant_name}*"] + [_format_line(line) for line in group.items]
        blocks.append("\n".join(lines))
    blocks.append(f"*Total: ${cart.total_price:.2f}*")
    return "\n\n".join(blocks)


def whatsapp_link(message: str, number: str = DEFAULT_WHATSAPP_NUMBER) -> str:
    return f"{WHATSAPP_URL}/{number}?text={quote(message, safe='')}"


def build_order_link(cart: Cart, number: str = DEFAULT_WHATSAPP_NUMBER) -> str:
    if not len(cart):
        raise ValueError("Cart is empty")
    return whatsapp_link(build_order_message(cart), number)


def build_concierge_link(request: str, number: str = DEFAULT_WHATSAPP_NUMBER) -> str:
    """Link for a free-text concierge request"""
    request = (request or "").strip()
    if not request:
        raise ValueError("Please enter your order details")
    if len(request) < MIN_CONCIERGE_LENGTH:
        raise ValueError("Please provide more details about your order")
    return whatsapp_link(f"{CONCIERGE_HEADER}\n\n{request}\n\n{CONCIERGE_FOOTER}", number)
