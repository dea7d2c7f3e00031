"""
Pydantic models for restaurants, menu items and the remote database document.

The remote document is stored as camelCase JSON. Attributes are snake_case in
Python and carry camelCase aliases, so models accept either spelling and dump
back to the stored shape with ``to_document()``.
"""
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


MenuType = Literal["visual", "tasting", "both"]
BackupAction = Literal["create", "update", "delete"]
ChangeType = Literal["added", "modified", "removed"]

DEFAULT_CATEGORY = "Uncategorized"


def now_ms() -> int:
    """Current time as epoch milliseconds"""
    return int(time.time() * 1000)


def generate_id(prefix: str = "") -> str:
    """Opaque, practically unique id such as '1718035200000-3f9a1c2b7'"""
    return f"{prefix}{now_ms()}-{uuid.uuid4().hex[:9]}"


class DocumentModel(BaseModel):
    """Base for everything that round-trips through the remote document"""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_document(self) -> Dict[str, Any]:
        """Dump to the stored camelCase shape, dropping unset optionals"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class MenuItem(DocumentModel):
    """
    A single dish owned by exactly one restaurant.

    ``price`` is required and positive. ``image`` is a URL or the empty string.
    """
    id: str
    name: str = Field(..., description="Dish name (e.g. 'Grilled Salmon')")
    name_ru: Optional[str] = None
    description: str = ""
    description_ru: Optional[str] = None
    price: float = Field(..., gt=0, description="Unit price")
    image: str = ""
    category: str = DEFAULT_CATEGORY
    category_ru: Optional[str] = None
    weight: Optional[float] = Field(None, gt=0, description="Portion weight in grams")

    @field_validator("category")
    @classmethod
    def default_category(cls, v):
        """Blank categories fall back to 'Uncategorized'"""
        return (v or "").strip() or DEFAULT_CATEGORY


class Restaurant(DocumentModel):
    """A restaurant and the menu items it owns"""
    id: str
    name: str
    name_ru: Optional[str] = None
    tagline: str = ""
    tagline_ru: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    description: str = ""
    description_ru: Optional[str] = None
    story: str = ""
    menu_type: MenuType = Field("visual", alias="menuType")
    cover_image: str = Field("", alias="coverImage")
    gallery_images: List[str] = Field(default_factory=list, alias="galleryImages")
    menu_items: List[MenuItem] = Field(default_factory=list, alias="menuItems")
    tasting_menu_description: str = Field("", alias="tastingMenuDescription")
    categories: List[str] = Field(default_factory=list)
    minimum_order_amount: Optional[float] = Field(None, gt=0, alias="minimumOrderAmount")
    order_deadline_hours: Optional[float] = Field(None, gt=0, alias="orderDeadlineHours")
    chef_service_price: Optional[float] = Field(None, gt=0, alias="chefServicePrice")
    waiter_service_price: Optional[float] = Field(None, gt=0, alias="waiterServicePrice")
    is_hidden: bool = Field(False, alias="isHidden")

    @field_validator("categories")
    @classmethod
    def distinct_categories(cls, v):
        """Keep categories distinct, first occurrence wins"""
        return list(dict.fromkeys(v))


class DatabaseDocument(DocumentModel):
    """The whole remote database: one JSON blob replaced on every write"""
    restaurants: List[Restaurant] = Field(default_factory=list)
    last_updated: int = Field(default_factory=now_ms, alias="lastUpdated")
    version: int = 1


class Credentials(BaseModel):
    """Locally persisted access to the remote document. Never sent in the document itself."""
    document_id: Optional[str] = None
    access_token: Optional[str] = None

    def complete(self) -> bool:
        return bool(self.document_id and self.access_token)


class ChangeDetail(DocumentModel):
    """One field-level difference between two versions of an entity"""
    field: str
    old_value: Any = Field(None, alias="oldValue")
    new_value: Any = Field(None, alias="newValue")
    change_type: ChangeType = Field(..., alias="changeType")


class BackupEntry(DocumentModel):
    """Immutable audit record written for every create/update/delete"""
    timestamp: int = Field(default_factory=now_ms)
    date: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    action: BackupAction
    entity_type: str = Field("restaurant", alias="entityType")
    entity_id: str = Field(..., alias="entityId")
    entity_name: str = Field("", alias="entityName")
    data: Optional[Dict[str, Any]] = None
    previous_data: Optional[Dict[str, Any]] = Field(None, alias="previousData")
    changes: List[ChangeDetail] = Field(default_factory=list)
    changes_summary: str = Field("", alias="changesSummary")


class SheetData(BaseModel):
    """One spreadsheet tab: its title and formatted cell values"""
    sheet_name: str
    rows: List[List[str]] = Field(default_factory=list)


class ImportResult(BaseModel):
    """Outcome of reconciling a spreadsheet against the current restaurants"""
    new_restaurants: List[Restaurant] = Field(default_factory=list)
    updated_restaurants: List[Restaurant] = Field(default_factory=list)
    added_count: int = 0
    updated_count: int = 0
    items_added_count: int = 0
    items_updated_count: int = 0
    errors: List[str] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.new_restaurants or self.updated_restaurants)

    def merge_into(self, existing: List[Restaurant]) -> List[Restaurant]:
        """Replace updated restaurants by id and append the new ones"""
        updated = {r.id: r for r in self.updated_restaurants}
        merged = [updated.get(r.id, r) for r in existing]
        merged.extend(self.new_restaurants)
        return merged


class RepairReport(BaseModel):
    """What the repair tool found and fixed"""
    success: bool = False
    errors: List[str] = Field(default_factory=list)
    fixed: List[str] = Field(default_factory=list)
    original_size: int = 0
    repaired_size: int = 0


class DriveFile(BaseModel):
    """A file listed from a shared drive folder"""
    id: str
    name: str
    mime_type: str = Field("", alias="mimeType")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SyncFailure(BaseModel):
    name: str
    error: str


class SyncResult(BaseModel):
    """Per-file outcome of a folder-to-storage sync"""
    success: List[str] = Field(default_factory=list)
    failed: List[SyncFailure] = Field(default_factory=list)
