"""
Remote document store: the whole restaurant database is one JSON file inside a
GitHub Gist.

Reads are cached for a few seconds. Every write replaces the whole document
and bumps its version by one. There is no server-side locking, so by default
the last writer wins; pass ``expected_version`` to ``save_restaurants`` to
turn a lost update into a ConflictError instead.
"""
import json
import logging
from typing import Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError

from ..errors import (
    ConflictError,
    DatabaseError,
    DocumentNotFoundError,
    DuplicateIdError,
    FetchError,
    InvalidTokenError,
    NoCredentialsError,
)
from ..models import Credentials, DatabaseDocument, Restaurant, now_ms
from .local import LocalStore

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
DATA_FILENAME = "imperial-restaurants.json"
DATABASE_DESCRIPTION = "Imperial Delicious Menu - Restaurant Database"
CREDENTIALS_KEY = "credentials"
CACHE_TTL_MS = 5000
REQUEST_TIMEOUT = 30.0


def _check_unique_ids(restaurants: List[Restaurant]):
    """Restaurant ids are unique, and item ids are unique within a restaurant"""
    seen = set()
    for restaurant in restaurants:
        if restaurant.id in seen:
            raise DuplicateIdError(f"Duplicate restaurant ID {restaurant.id!r}, nothing was saved")
        seen.add(restaurant.id)

        item_ids = set()
        for item in restaurant.menu_items:
            if item.id in item_ids:
                raise DuplicateIdError(
                    f"Duplicate menu item ID {item.id!r} in {restaurant.name!r}, nothing was saved"
                )
            item_ids.add(item.id)


class DocumentStore:
    """Read and replace the restaurant database held in a Gist"""

    def __init__(
        self,
        local: LocalStore,
        backups=None,
        document_id: Optional[str] = None,
        access_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        base_url: str = GITHUB_API_URL,
        cache_ttl_ms: int = CACHE_TTL_MS,
        clock: Callable[[], int] = now_ms,
    ):
        self.local = local
        self.backups = backups
        self.transport = transport
        self.base_url = base_url
        self.cache_ttl_ms = cache_ttl_ms
        self.clock = clock

        stored = self.local.get(CREDENTIALS_KEY, {}) or {}
        self.document_id = document_id or stored.get("documentId")
        self.access_token = access_token or stored.get("accessToken")

        self._cache: Optional[DatabaseDocument] = None
        self._cache_expiry = 0

    # -- credentials -------------------------------------------------------

    def set_credentials(self, document_id: str, access_token: Optional[str]):
        """Remember credentials locally; they are only ever sent as the auth header"""
        self.document_id = document_id
        self.access_token = access_token
        self.local.set(CREDENTIALS_KEY, {"documentId": document_id, "accessToken": access_token})
        self.clear_cache()

    def get_credentials(self) -> Credentials:
        return Credentials(document_id=self.document_id, access_token=self.access_token)

    def clear_credentials(self):
        self.document_id = None
        self.access_token = None
        self.local.delete(CREDENTIALS_KEY)
        self.clear_cache()

    def has_credentials(self) -> bool:
        """True when both the document id and the access token are set"""
        return bool(self.document_id and self.access_token)

    def has_read_access(self) -> bool:
        """Public gists can be read with the document id alone"""
        return bool(self.document_id)

    # -- HTTP --------------------------------------------------------------

    def _headers(self, with_token: bool = True) -> Dict[str, str]:
        headers = {"Accept": "application/vnd.github.v3+json"}
        if with_token and self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=REQUEST_TIMEOUT, transport=self.transport)

    def _raise_for_status(self, response: httpx.Response, action: str):
        if response.is_success:
            return
        if response.status_code == 401:
            raise InvalidTokenError("Invalid GitHub token. Please check your credentials.")
        if response.status_code == 404:
            raise DocumentNotFoundError("Database not found. Please check your Gist ID.")
        raise FetchError(f"Failed to {action}: {response.status_code} {response.reason_phrase}")

    def _require_document_id(self):
        if not self.document_id:
            raise NoCredentialsError(
                "Database not configured. Please set up GitHub credentials in Admin Panel."
            )

    def _require_write_access(self):
        self._require_document_id()
        if not self.access_token:
            raise NoCredentialsError(
                "GitHub token required for write operations. Please configure in Admin Panel."
            )

    async def fetch_raw(self) -> str:
        """Raw JSON text of the database file, without parsing it"""
        self._require_document_id()
        try:
            async with self._client() as client:
                response = await client.get(f"/gists/{self.document_id}", headers=self._headers())
                self._raise_for_status(response, "fetch database")
                gist = response.json()

                file = (gist.get("files") or {}).get(DATA_FILENAME)
                if not file:
                    raise DocumentNotFoundError(f"Database file {DATA_FILENAME} not found in Gist")

                # Gist API truncates large files; the full text is behind raw_url
                if file.get("truncated") and file.get("raw_url"):
                    raw = await client.get(file["raw_url"], headers=self._headers())
                    self._raise_for_status(raw, "fetch database content")
                    return raw.text
                return file.get("content") or ""
        except httpx.HTTPError as e:
            raise FetchError(f"Failed to fetch database: {e}") from e
        except ValueError as e:
            raise FetchError(f"Unexpected response from GitHub: {e}") from e

    async def write_raw(self, content: str):
        """Replace the database file with ``content`` (no validation)"""
        self._require_write_access()
        payload = {"files": {DATA_FILENAME: {"content": content}}}
        try:
            async with self._client() as client:
                response = await client.patch(f"/gists/{self.document_id}", headers=self._headers(), json=payload)
                self._raise_for_status(response, "update database")
        except httpx.HTTPError as e:
            raise FetchError(f"Failed to update database: {e}", "UPDATE_ERROR") from e

    # -- reads -------------------------------------------------------------

    async def get_data(self) -> DatabaseDocument:
        """
        Current database document.

        Served from cache while it is younger than the TTL; callers get their
        own copy and may mutate it freely.
        """
        if self._cache is not None and self.clock() < self._cache_expiry:
            return self._cache.model_copy(deep=True)

        content = await self.fetch_raw()
        try:
            document = DatabaseDocument.model_validate(json.loads(content))
        except ValueError as e:
            # ValidationError is a ValueError too
            kind = "invalid" if isinstance(e, ValidationError) else "not valid JSON"
            raise FetchError(
                f"Failed to read database: content is {kind} ({e}). Run the repair tool.",
                "READ_ERROR",
            ) from e

        self._set_cache(document)
        logger.debug("Fetched database version %s with %d restaurants", document.version, len(document.restaurants))
        return document.model_copy(deep=True)

    async def get_restaurants(self) -> List[Restaurant]:
        data = await self.get_data()
        return data.restaurants

    async def test_connection(self) -> bool:
        try:
            await self.get_data()
            return True
        except DatabaseError as e:
            logger.warning("Connection test failed: %s", e)
            return False

    def _set_cache(self, document: DatabaseDocument):
        self._cache = document.model_copy(deep=True)
        self._cache_expiry = self.clock() + self.cache_ttl_ms

    def clear_cache(self):
        self._cache = None
        self._cache_expiry = 0

    # -- writes ------------------------------------------------------------

    async def save_restaurants(
        self, restaurants: List[Restaurant], expected_version: Optional[int] = None
    ) -> DatabaseDocument:
        """
        Replace the restaurant list, bumping the document version by one.

        Args:
            restaurants: Complete new restaurant list
            expected_version: When given, re-read the remote document first and
                raise ConflictError unless its version still matches

        Returns:
            The document as written
        """
        self._require_write_access()
        _check_unique_ids(restaurants)
        if expected_version is not None:
            self.clear_cache()
        current = await self.get_data()

        if expected_version is not None and current.version != expected_version:
            raise ConflictError(expected_version, current.version)

        document = DatabaseDocument(
            restaurants=list(restaurants),
            last_updated=max(self.clock(), current.last_updated),
            version=(current.version or 0) + 1,
        )
        content = json.dumps(document.to_document(), indent=2, ensure_ascii=False)
        await self.write_raw(content)

        self._set_cache(document)
        logger.info("Saved %d restaurants (version %d)", len(document.restaurants), document.version)
        return document

    def _record(self, action: str, restaurant: Restaurant, previous: Optional[Restaurant] = None):
        # recorded before the remote write so a pre-image exists even if the write fails
        if self.backups is not None:
            self.backups.record(action, "restaurant", restaurant.id, restaurant.name, restaurant, previous)

    async def add_restaurant(self, restaurant: Restaurant) -> DatabaseDocument:
        restaurants = await self.get_restaurants()
        if any(r.id == restaurant.id for r in restaurants):
            raise DuplicateIdError("Restaurant with this ID already exists")

        self._record("create", restaurant)
        restaurants.append(restaurant)
        return await self.save_restaurants(restaurants)

    async def update_restaurant(self, restaurant: Restaurant) -> DatabaseDocument:
        restaurants = await self.get_restaurants()
        for index, existing in enumerate(restaurants):
            if existing.id == restaurant.id:
                break
        else:
            raise DocumentNotFoundError("Restaurant not found")

        self._record("update", restaurant, existing)
        restaurants[index] = restaurant
        return await self.save_restaurants(restaurants)

    async def delete_restaurant(self, restaurant_id: str) -> DatabaseDocument:
        restaurants = await self.get_restaurants()
        existing = next((r for r in restaurants if r.id == restaurant_id), None)
        if existing is None:
            raise DocumentNotFoundError("Restaurant not found")

        self._record("delete", existing, existing)
        return await self.save_restaurants([r for r in restaurants if r.id != restaurant_id])

    async def create_database(self, token: Optional[str] = None, public: bool = True) -> Dict[str, str]:
        """
        Create a new, empty database gist and switch to it.

        Returns:
            {'document_id': ..., 'url': ...}
        """
        token = token or self.access_token
        if not token:
            raise NoCredentialsError("GitHub token required to create database")

        initial = DatabaseDocument(restaurants=[], last_updated=self.clock(), version=1)
        payload = {
            "description": DATABASE_DESCRIPTION,
            "public": public,
            "files": {DATA_FILENAME: {"content": json.dumps(initial.to_document(), indent=2)}},
        }
        headers = {"Accept": "application/vnd.github.v3+json", "Authorization": f"Bearer {token}"}

        try:
            async with self._client() as client:
                response = await client.post("/gists", headers=headers, json=payload)
        except httpx.HTTPError as e:
            raise FetchError(f"Failed to create database: {e}", "CREATE_ERROR") from e

        if response.status_code == 401:
            raise InvalidTokenError("Invalid GitHub token")
        if not response.is_success:
            raise FetchError(
                f"Failed to create database: {response.status_code} {response.reason_phrase}", "CREATE_ERROR"
            )

        gist = response.json()
        self.set_credentials(gist["id"], token)
        logger.info("Created database gist %s", gist["id"])
        return {"document_id": gist["id"], "url": gist.get("html_url", "")}
