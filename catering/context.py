"""
Explicitly constructed service container.

Holds the services and their cached state for one session. Scripts create a
context, call ``init()`` and pass it around; ``clear()`` drops cached data
and the services so nothing survives between sessions.
"""
import logging
from typing import Optional

import httpx

from .config import Settings, load_settings
from .history.backup import BackupRecorder
from .importer.sheet_import import SheetImporter
from .ordering import Cart, build_concierge_link, build_order_link
from .importer.sheets import SpreadsheetFetcher
from .store.database import DocumentStore
from .store.local import LocalStore
from .sync.drive import DriveToStorageSync

logger = logging.getLogger(__name__)


class CateringContext:
    """Settings plus every service built from them"""

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.transport = transport

        self.local: Optional[LocalStore] = None
        self.backups: Optional[BackupRecorder] = None
        self.store: Optional[DocumentStore] = None
        self.fetcher: Optional[SpreadsheetFetcher] = None
        self.importer: Optional[SheetImporter] = None
        self.drive_sync: Optional[DriveToStorageSync] = None

    @property
    def initialized(self) -> bool:
        return self.store is not None

    def init(self) -> "CateringContext":
        if self.initialized:
            return self
        settings = self._settings()

        self.local = LocalStore(settings.data_dir)
        self.backups = BackupRecorder(self.local)
        # environment credentials override the ones saved locally
        self.store = DocumentStore(
            self.local,
            backups=self.backups,
            document_id=settings.gist_id,
            access_token=settings.github_token,
            transport=self.transport,
        )
        self.fetcher = SpreadsheetFetcher(api_key=settings.google_api_key, transport=self.transport)
        self.importer = SheetImporter(self.store, self.fetcher, backups=self.backups)
        self.drive_sync = DriveToStorageSync(
            settings.google_api_key,
            settings.firebase_storage_bucket,
            transport=self.transport,
        )
        logger.debug("Context initialized with data dir %s", settings.data_dir)
        return self

    def clear(self):
        if self.store is not None:
            self.store.clear_cache()
        self.local = None
        self.backups = None
        self.store = None
        self.fetcher = None
        self.importer = None
        self.drive_sync = None

    def order_link(self, cart: Cart) -> str:
        """WhatsApp link for the cart, sent to the configured number"""
        return build_order_link(cart, self._settings().whatsapp_number)

    def concierge_link(self, request: str) -> str:
        return build_concierge_link(request, self._settings().whatsapp_number)

    def _settings(self) -> Settings:
        if self.settings is None:
            self.settings = load_settings()
        return self.settings
