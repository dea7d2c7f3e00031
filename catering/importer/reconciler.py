"""
Spreadsheet import reconciliation.

Each tab of the spreadsheet describes one restaurant (the tab title is the
restaurant name). Rows are parsed into menu items and compared against the
restaurants already in the database to decide, per restaurant, whether it is
new, updated or unchanged.

Sheet layout (columns):
    A name*  B description  C price*  D category  E weight (g)  F image URL
    G name_ru  H description_ru  I category_ru

An optional header row is skipped. Within the first rows, a row whose first
cell is "Restaurant Description" or "Restaurant Photo" marks a metadata
block; the row after it holds the value (description EN/RU in A/B, photo URL
in A).

Matching is by exact, case-insensitive name, for restaurants and for items.
Renaming an item in the sheet therefore adds a new item and keeps the old
one. Items missing from the sheet are kept as they are.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set, Tuple

from ..models import (
    DEFAULT_CATEGORY,
    ImportResult,
    MenuItem,
    Restaurant,
    SheetData,
    generate_id,
)
from .sanitize import (
    is_http_url,
    parse_price,
    parse_weight,
    sanitize_text,
    truncate_url,
)

logger = logging.getLogger(__name__)

HEADER_NAMES = {"item name", "name", "item"}
DESCRIPTION_SENTINEL = "restaurant description"
PHOTO_SENTINEL = "restaurant photo"
METADATA_SCAN_ROWS = 3

COL_NAME = 0
COL_DESCRIPTION = 1
COL_PRICE = 2
COL_CATEGORY = 3
COL_WEIGHT = 4
COL_IMAGE = 5
COL_NAME_RU = 6
COL_DESCRIPTION_RU = 7
COL_CATEGORY_RU = 8

# fields compared between an imported item and the existing one
COMPARED_FIELDS = (
    "price",
    "description",
    "description_ru",
    "category",
    "category_ru",
    "weight",
    "image",
    "name_ru",
)
TEXT_FIELDS = {"description", "description_ru", "category", "category_ru", "image", "name_ru"}


@dataclass
class SheetMetadata:
    description: str = ""
    description_ru: str = ""
    cover_image: str = ""


@dataclass
class ParsedSheet:
    restaurant_name: str
    items: List[MenuItem] = field(default_factory=list)
    metadata: SheetMetadata = field(default_factory=SheetMetadata)
    errors: List[str] = field(default_factory=list)
    data_rows: int = 0


def _cell(row: List[str], index: int) -> str:
    if index < len(row) and row[index] is not None:
        return sanitize_text(row[index])
    return ""


def item_key(name: str) -> str:
    return (name or "").strip().lower()


def distinct_categories(items: List[MenuItem]) -> List[str]:
    return list(dict.fromkeys(item.category for item in items))


def _same(field_name: str, old, new) -> bool:
    if field_name in TEXT_FIELDS:
        return (old or "") == (new or "")
    return old == new


class ImportReconciler:
    """Turns parsed sheets into new and updated restaurants"""

    def __init__(self, backups=None, id_factory: Callable[[], str] = generate_id):
        self.backups = backups
        self.id_factory = id_factory

    # -- parsing -----------------------------------------------------------

    def _read_metadata(self, rows: List[List[str]], sheet_label: str) -> Tuple[SheetMetadata, Set[int]]:
        """Metadata blocks in the first rows, plus the indexes they occupy"""
        metadata = SheetMetadata()
        consumed: Set[int] = set()

        for i in range(min(METADATA_SCAN_ROWS, len(rows))):
            if i in consumed:
                continue
            marker = _cell(rows[i], 0).lower()
            if marker not in (DESCRIPTION_SENTINEL, PHOTO_SENTINEL):
                continue

            consumed.add(i)
            if i + 1 >= len(rows):
                continue
            consumed.add(i + 1)
            value_row = rows[i + 1]

            if marker == DESCRIPTION_SENTINEL:
                metadata.description = _cell(value_row, 0)
                metadata.description_ru = _cell(value_row, 1)
            else:
                url = _cell(value_row, 0)
                if is_http_url(url):
                    metadata.cover_image = truncate_url(url)
                elif url:
                    logger.warning("%s: restaurant photo %r does not start with http, ignoring it", sheet_label, url[:50])

        return metadata, consumed

    def _parse_row(self, row: List[str], row_number: int, label: str, errors: List[str]) -> Optional[MenuItem]:
        name = _cell(row, COL_NAME)
        price_text = _cell(row, COL_PRICE)

        missing = [f for f, value in (("name", name), ("price", price_text)) if not value]
        if missing:
            errors.append(f'{label}, row {row_number}: missing {" and ".join(missing)}')
            return None

        price = parse_price(price_text)
        if price is None:
            errors.append(f'{label}, row {row_number}: invalid price "{price_text}" for "{name}"')
            return None

        image = _cell(row, COL_IMAGE)
        if image and not is_http_url(image):
            errors.append(f'{label}, row {row_number}: image URL for "{name}" must start with http, ignored ("{image[:50]}")')
            image = ""
        elif image:
            image = truncate_url(image)

        return MenuItem(
            id=self.id_factory(),
            name=name,
            name_ru=_cell(row, COL_NAME_RU) or None,
            description=_cell(row, COL_DESCRIPTION),
            description_ru=_cell(row, COL_DESCRIPTION_RU) or None,
            price=price,
            image=image,
            category=_cell(row, COL_CATEGORY) or DEFAULT_CATEGORY,
            category_ru=_cell(row, COL_CATEGORY_RU) or None,
            weight=parse_weight(_cell(row, COL_WEIGHT)),
        )

    def parse_sheet(self, sheet: SheetData) -> ParsedSheet:
        """Parse one tab into menu items, collecting row-level errors"""
        name = (sheet.sheet_name or "").strip()
        parsed = ParsedSheet(restaurant_name=name)
        label = f'Restaurant "{name}"'
        rows = sheet.rows

        start = 0
        if rows and rows[0] and _cell(rows[0], 0).lower() in HEADER_NAMES:
            logger.debug("%s: first row is a header, skipping it", label)
            start = 1

        parsed.metadata, consumed = self._read_metadata(rows, label)

        for i in range(start, len(rows)):
            if i in consumed:
                continue
            row = rows[i] or []
            if not any(_cell(row, c) for c in range(len(row))):
                continue

            parsed.data_rows += 1
            item = self._parse_row(row, i + 1, label, parsed.errors)
            if item is not None:
                logger.debug("%s, row %d: parsed %r at %s", label, i + 1, item.name, item.price)
                parsed.items.append(item)

        return parsed

    # -- reconciliation ----------------------------------------------------

    def _merge_items(self, existing: Restaurant, imported: List[MenuItem]) -> Tuple[List[MenuItem], List[str], List[str]]:
        """
        Merge imported items into the existing menu.

        Returns:
            (merged items, names of new items, names of updated items)
        """
        # duplicate names pair up in order: the n-th imported "Soup" matches the n-th existing one
        remaining: Dict[str, List[MenuItem]] = {}
        for item in existing.menu_items:
            remaining.setdefault(item_key(item.name), []).append(item)

        merged = []
        matched_ids = set()
        new_names, updated_names = [], []

        for imported_item in imported:
            candidates = remaining.get(item_key(imported_item.name))
            if not candidates:
                merged.append(imported_item)
                new_names.append(imported_item.name)
                continue

            current = candidates.pop(0)
            matched_ids.add(current.id)
            changed = [f for f in COMPARED_FIELDS if not _same(f, getattr(current, f), getattr(imported_item, f))]
            if changed:
                logger.debug("Item %r changed: %s", current.name, ", ".join(changed))
                merged.append(current.model_copy(update={f: getattr(imported_item, f) for f in COMPARED_FIELDS}))
                updated_names.append(current.name)
            else:
                merged.append(current)

        for item in existing.menu_items:
            if item.id not in matched_ids:
                merged.append(item)

        return merged, new_names, updated_names

    def _metadata_updates(self, existing: Restaurant, metadata: SheetMetadata) -> Dict[str, str]:
        updates = {}
        if metadata.description and metadata.description != existing.description:
            updates["description"] = metadata.description
        if metadata.description_ru and metadata.description_ru != (existing.description_ru or ""):
            updates["description_ru"] = metadata.description_ru
        if metadata.cover_image and metadata.cover_image != existing.cover_image:
            updates["cover_image"] = metadata.cover_image
        return updates

    def _new_restaurant(self, parsed: ParsedSheet) -> Restaurant:
        return Restaurant(
            id=self.id_factory(),
            name=parsed.restaurant_name,
            tagline="",
            tags=[],
            description=parsed.metadata.description,
            description_ru=parsed.metadata.description_ru or None,
            story=f"Imported from Google Sheets on {datetime.now().strftime('%Y-%m-%d %H:%M')}",
            menu_type="visual",
            cover_image=parsed.metadata.cover_image,
            gallery_images=[],
            menu_items=parsed.items,
            tasting_menu_description="",
            categories=distinct_categories(parsed.items),
            is_hidden=False,
        )

    def _record(self, action: str, restaurant: Restaurant, previous: Optional[Restaurant] = None):
        if self.backups is not None:
            self.backups.record(action, "restaurant", restaurant.id, restaurant.name, restaurant, previous)

    def reconcile(self, sheets: List[SheetData], existing_restaurants: List[Restaurant]) -> ImportResult:
        """
        Compare parsed sheets against the current restaurants.

        Sheets are processed in order. Nothing is written here: the caller
        merges the result into the restaurant list and saves it once.
        """
        result = ImportResult()

        if not sheets:
            result.errors.append("No sheets found in the spreadsheet")
            return result

        by_name = {item_key(r.name): r for r in reversed(existing_restaurants)}
        seen: Set[str] = set()
        logger.info("Processing sheets: %s", [s.sheet_name for s in sheets])

        for sheet in sheets:
            parsed = self.parse_sheet(sheet)
            name = parsed.restaurant_name
            label = f'Restaurant "{name}"'

            if not name:
                result.errors.append("Found sheet with empty name, skipping")
                continue
            if item_key(name) in seen:
                result.errors.append(f"{label}: another sheet has the same name, skipping")
                continue
            seen.add(item_key(name))

            result.errors.extend(parsed.errors)

            if not parsed.items:
                if parsed.errors:
                    result.errors.append(
                        f"{label}: all {parsed.data_rows} data rows had errors, nothing imported"
                    )
                else:
                    result.errors.append(
                        f"{label}: sheet has no menu data (rows need at least Item Name and Price)"
                    )
                continue

            existing = by_name.get(item_key(name))
            if existing is None:
                restaurant = self._new_restaurant(parsed)
                self._record("create", restaurant)
                result.new_restaurants.append(restaurant)
                result.items_added_count += len(parsed.items)
                logger.info("New restaurant %r with %d items", name, len(parsed.items))
                continue

            merged, new_names, updated_names = self._merge_items(existing, parsed.items)
            updates = self._metadata_updates(existing, parsed.metadata)

            if not (new_names or updated_names or updates):
                result.errors.append(f"{label}: No changes detected - all menu items are identical")
                logger.info("No changes for %r", name)
                continue

            metadata_changed = bool(updates)
            updates["menu_items"] = merged
            updates["categories"] = distinct_categories(merged)
            restaurant = existing.model_copy(update=updates)

            self._record("update", restaurant, existing)
            result.updated_restaurants.append(restaurant)
            result.items_added_count += len(new_names)
            result.items_updated_count += len(updated_names)
            logger.info(
                "Updated restaurant %r: %d new, %d updated items%s",
                name, len(new_names), len(updated_names), ", metadata changed" if metadata_changed else "",
            )

        result.added_count = len(result.new_restaurants)
        result.updated_count = len(result.updated_restaurants)
        logger.info(
            "Import completed: %d new, %d updated restaurants, %d items added, %d issues",
            result.added_count, result.updated_count, result.items_added_count, len(result.errors),
        )
        return result
