"""
Best-effort repair of a corrupted database document.

The raw text is parsed; if that fails, three textual fixes are applied in
order (control characters, unescaped quotes inside strings, trailing commas)
and the text is parsed once more. A document that still does not parse is
reported as unrepairable and left untouched.

A parsed document is then brought back into shape: missing ids and names are
generated, free text is cleaned, non-web image URLs are cleared and menu items
without a name or a positive price are dropped. The result is written back
only when it serializes to a document the store can read again.
"""
import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from ..errors import DatabaseError
from ..importer.sanitize import is_http_url, parse_price, strip_control_chars
from ..models import DEFAULT_CATEGORY, DatabaseDocument, RepairReport, generate_id, now_ms
from .database import DocumentStore

logger = logging.getLogger(__name__)

CONTROL_CHARS = re.compile(r'[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]')
UNESCAPED_QUOTE = re.compile(r'(?<!\\)"')
TRAILING_COMMA = re.compile(r',(\s*[}\]])')

# a quote next to one of these (ignoring whitespace) delimits a JSON string
OPENING_CONTEXT = ':,[{'
CLOSING_CONTEXT = ':,}]'

ERROR_CONTEXT_CHARS = 100
MENU_TYPES = ("visual", "tasting", "both")

RESTAURANT_TEXT_FIELDS = ("description", "story", "tagline")
RESTAURANT_OPTIONAL_TEXT_FIELDS = ("description_ru", "name_ru", "tagline_ru")
ITEM_TEXT_FIELDS = ("description",)
ITEM_OPTIONAL_TEXT_FIELDS = ("name_ru", "description_ru", "category_ru")
RESTAURANT_OPTIONAL_NUMBERS = ("minimumOrderAmount", "orderDeadlineHours", "chefServicePrice", "waiterServicePrice")


def _char_before(text: str, index: int) -> str:
    index -= 1
    while index >= 0 and text[index].isspace():
        index -= 1
    return text[index] if index >= 0 else ''


def _char_after(text: str, index: int) -> str:
    index += 1
    while index < len(text) and text[index].isspace():
        index += 1
    return text[index] if index < len(text) else ''


def escape_stray_quotes(text: str) -> str:
    """
    Escape double quotes that sit inside a string value.

    A quote is kept as a delimiter when the nearest non-blank character
    before it opens a value (or there is none), or the nearest one after it
    closes a value (or there is none). Every other unescaped quote is escaped,
    so valid JSON passes through unchanged.
    """
    def replace(match: re.Match) -> str:
        index = match.start()
        before = _char_before(text, index)
        after = _char_after(text, index)
        if not before or before in OPENING_CONTEXT or not after or after in CLOSING_CONTEXT:
            return '"'
        return '\\"'

    return UNESCAPED_QUOTE.sub(replace, text)


def repair_text(content: str) -> str:
    """Textual fixes for JSON that does not parse"""
    content = CONTROL_CHARS.sub('', content)
    content = escape_stray_quotes(content)
    return TRAILING_COMMA.sub(r'\1', content)


def _error_context(content: str, error: json.JSONDecodeError) -> str:
    start = max(0, error.pos - ERROR_CONTEXT_CHARS)
    return content[start:error.pos + ERROR_CONTEXT_CHARS]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class DocumentRepairer:
    """Schema repair of an already parsed document, noting what it changed"""

    def __init__(self, report: RepairReport, id_factory: Callable[[str], str] = generate_id):
        self.report = report
        self.id_factory = id_factory

    def _clean_image(self, value: Any, owner: str) -> str:
        if not value:
            return ''
        if isinstance(value, str) and is_http_url(value):
            return strip_control_chars(value)
        self.report.errors.append(f"Invalid image URL for {owner}: {str(value)[:50]}...")
        return ''

    def _clean_text(self, entity: Dict[str, Any], required: tuple, optional: tuple):
        for key in required:
            entity[key] = strip_control_chars(str(entity.get(key) or ''))
        for key in optional:
            if entity.get(key):
                entity[key] = strip_control_chars(str(entity[key]))
            else:
                entity.pop(key, None)

    def repair_item(self, item: Any, restaurant_name: str) -> Optional[Dict[str, Any]]:
        if not isinstance(item, dict):
            self.report.errors.append(f"Removed invalid menu item from {restaurant_name}: not an object")
            return None

        price = item.get("price")
        if isinstance(price, str):
            price = parse_price(price)
            if price is not None:
                item["price"] = price
                self.report.fixed.append(f"Converted text price of menu item {item.get('name')!r} to a number")

        if not item.get("name") or not _is_number(price) or price <= 0:
            self.report.errors.append(
                f"Removed invalid menu item from {restaurant_name}: {item.get('name') or 'unnamed'}"
            )
            return None

        if not item.get("id"):
            item["id"] = self.id_factory("repaired-item-")
            self.report.fixed.append(f"Generated ID for menu item: {item['name']}")
        elif not isinstance(item["id"], str):
            item["id"] = str(item["id"])
            self.report.fixed.append(f"Converted ID of menu item {item['name']!r} to text")

        item["name"] = strip_control_chars(str(item["name"]))
        item["category"] = strip_control_chars(str(item.get("category") or '')) or DEFAULT_CATEGORY
        self._clean_text(item, ITEM_TEXT_FIELDS, ITEM_OPTIONAL_TEXT_FIELDS)
        item["image"] = self._clean_image(item.get("image"), item["name"])

        weight = item.get("weight")
        if weight is not None and (not _is_number(weight) or weight <= 0):
            item.pop("weight")
            self.report.fixed.append(f"Removed invalid weight of menu item: {item['name']}")

        return item

    def _repair_settings(self, restaurant: Dict[str, Any], name: str):
        """Tags, tasting menu text, visibility and the optional order settings"""
        tags = restaurant.get("tags")
        if tags is None:
            if "tags" in restaurant:
                self.report.fixed.append(f"Replaced empty tags of {name} with an empty list")
            restaurant["tags"] = []
        elif not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            restaurant["tags"] = [t for t in tags if isinstance(t, str)] if isinstance(tags, list) else []
            self.report.fixed.append(f"Removed invalid tags from {name}")

        tasting = restaurant.get("tastingMenuDescription")
        if tasting is not None and not isinstance(tasting, str):
            self.report.fixed.append(f"Cleared invalid tasting menu description of {name}")
        restaurant["tastingMenuDescription"] = strip_control_chars(tasting) if isinstance(tasting, str) else ''

        hidden = restaurant.get("isHidden")
        if not isinstance(hidden, bool):
            restaurant["isHidden"] = False
            if hidden is not None:
                self.report.fixed.append(f"Reset invalid hidden flag of {name} to visible")

        for key in RESTAURANT_OPTIONAL_NUMBERS:
            value = restaurant.get(key)
            if value is None:
                restaurant.pop(key, None)
                continue
            if isinstance(value, str):
                value = parse_price(value)
            if _is_number(value) and value > 0:
                restaurant[key] = value
            else:
                restaurant.pop(key)
                self.report.fixed.append(f"Removed invalid {key} of {name}")

    def repair_restaurant(self, restaurant: Any, index: int) -> Optional[Dict[str, Any]]:
        if not isinstance(restaurant, dict):
            self.report.errors.append(f"Removed restaurant entry {index + 1}: not an object")
            return None

        if not restaurant.get("id"):
            restaurant["id"] = self.id_factory("repaired-")
            self.report.fixed.append(f"Generated missing ID for restaurant: {restaurant.get('name') or 'Unnamed'}")
        elif not isinstance(restaurant["id"], str):
            restaurant["id"] = str(restaurant["id"])
            self.report.fixed.append(f"Converted ID of restaurant {restaurant.get('name') or 'Unnamed'} to text")
        if not restaurant.get("name"):
            restaurant["name"] = f"Restaurant {index + 1}"
            self.report.fixed.append(f"Generated missing name for restaurant {restaurant['id']}")

        name = restaurant["name"] = strip_control_chars(str(restaurant["name"]))
        self._clean_text(restaurant, RESTAURANT_TEXT_FIELDS, RESTAURANT_OPTIONAL_TEXT_FIELDS)
        restaurant["coverImage"] = self._clean_image(restaurant.get("coverImage"), name)

        gallery = restaurant.get("galleryImages")
        if not isinstance(gallery, list):
            restaurant["galleryImages"] = []
        else:
            kept = [url for url in gallery if isinstance(url, str) and is_http_url(url)]
            if len(kept) != len(gallery):
                self.report.fixed.append(f"Removed {len(gallery) - len(kept)} invalid gallery image(s) from {name}")
            restaurant["galleryImages"] = kept

        self._repair_settings(restaurant, name)

        if restaurant.get("menuType") not in MENU_TYPES:
            restaurant["menuType"] = "visual"
            self.report.fixed.append(f"Reset menu type of {name} to visual")

        items = restaurant.get("menuItems")
        if not isinstance(items, list):
            items = []
            self.report.fixed.append(f"Fixed missing menu items for: {name}")
        restaurant["menuItems"] = [
            repaired for repaired in (self.repair_item(item, name) for item in items) if repaired is not None
        ]

        categories = restaurant.get("categories")
        if not isinstance(categories, list) or not all(isinstance(c, str) for c in categories):
            restaurant["categories"] = list(dict.fromkeys(item["category"] for item in restaurant["menuItems"]))
            if categories is not None:
                self.report.fixed.append(f"Rebuilt categories of {name} from its menu items")

        return restaurant

    def repair(self, data: Any) -> Dict[str, Any]:
        if isinstance(data, list):
            data = {"restaurants": data}
            self.report.fixed.append("Wrapped bare restaurant list into a database document")
        elif not isinstance(data, dict):
            data = {}

        restaurants = data.get("restaurants")
        if not isinstance(restaurants, list):
            restaurants = []
            self.report.fixed.append("Fixed missing or invalid restaurants array")

        repaired: List[Dict[str, Any]] = []
        for index, restaurant in enumerate(restaurants):
            restaurant = self.repair_restaurant(restaurant, index)
            if restaurant is not None:
                repaired.append(restaurant)
        data["restaurants"] = repaired

        if not isinstance(data.get("version"), int) or isinstance(data.get("version"), bool) or data["version"] < 1:
            data["version"] = 1
            self.report.fixed.append("Fixed missing version number")
        if not _is_number(data.get("lastUpdated")):
            data["lastUpdated"] = now_ms()
            self.report.fixed.append("Fixed missing lastUpdated timestamp")
        elif not isinstance(data["lastUpdated"], int):
            data["lastUpdated"] = int(data["lastUpdated"])

        return data


async def repair_database(store: DocumentStore, write: bool = True) -> RepairReport:
    """
    Fetch, repair and (unless ``write`` is False) save the database.

    Failures are reported in ``report.errors``; nothing is raised.
    """
    report = RepairReport()

    try:
        content = await store.fetch_raw()
    except DatabaseError as e:
        report.errors.append(f"Failed to fetch database: {e}")
        return report
    report.original_size = len(content)

    try:
        data = json.loads(content)
        report.fixed.append("JSON is valid - no structural errors found")
    except json.JSONDecodeError as e:
        report.errors.append(f"JSON parse error: {e}")
        report.errors.append(f'Error location: "{_error_context(content, e)}"')
        try:
            data = json.loads(repair_text(content))
        except json.JSONDecodeError:
            report.errors.append("Unable to automatically repair JSON. Manual intervention required.")
            logger.error("Database JSON could not be repaired")
            return report
        report.fixed.extend([
            "Removed control characters",
            "Escaped unescaped quotes",
            "Removed trailing commas",
        ])

    data = DocumentRepairer(report).repair(data)

    repaired_json = json.dumps(data, indent=2, ensure_ascii=False)
    report.repaired_size = len(repaired_json)
    try:
        DatabaseDocument.model_validate(json.loads(repaired_json))
    except ValueError as e:
        report.errors.append(f"Repaired data is still invalid: {e}")
        return report

    if not write:
        report.success = True
        report.fixed.append("Dry run: repaired database was not saved")
        return report

    try:
        await store.write_raw(repaired_json)
    except DatabaseError as e:
        report.errors.append(f"Failed to save repaired database: {e}")
        return report

    store.clear_cache()
    report.success = True
    report.fixed.append("Saved repaired database")
    logger.info("Repaired database saved (%d → %d chars)", report.original_size, report.repaired_size)
    return report
