"""
End-to-end spreadsheet import: fetch every tab, reconcile against the
database and write the merged restaurant list back in a single save.
"""
import logging
from typing import Optional

from ..errors import NoCredentialsError, SheetsRequestError
from ..models import ImportResult
from ..store.database import DocumentStore
from .detection import extract_spreadsheet_id
from .reconciler import ImportReconciler
from .sheets import SpreadsheetFetcher

logger = logging.getLogger(__name__)


class SheetImporter:
    """Runs one import from a spreadsheet into the document store"""

    def __init__(self, store: DocumentStore, fetcher: SpreadsheetFetcher, backups=None, check_version: bool = True):
        self.store = store
        self.fetcher = fetcher
        self.backups = backups
        self.check_version = check_version

    async def run(self, spreadsheet: str, dry_run: bool = False, api_key: Optional[str] = None) -> ImportResult:
        """
        Import a spreadsheet given by URL or id.

        Args:
            spreadsheet: Sheet URL or bare spreadsheet id
            dry_run: Reconcile and report without writing or recording backups
            api_key: Overrides the fetcher's API key

        Returns:
            The reconciliation result; ``errors`` holds row-level issues and
            per-restaurant notices
        """
        spreadsheet_id = extract_spreadsheet_id(spreadsheet)
        if not spreadsheet_id:
            raise SheetsRequestError(f"Could not find a spreadsheet ID in {spreadsheet!r}. Paste the full sheet URL.")

        if not dry_run and not self.store.has_credentials():
            raise NoCredentialsError("Importing needs write access. Set the Gist ID and GitHub token first.")

        sheets = await self.fetcher.fetch_all_sheets(spreadsheet_id, api_key)

        document = await self.store.get_data()
        reconciler = ImportReconciler(backups=None if dry_run else self.backups)
        result = reconciler.reconcile(sheets, document.restaurants)

        if dry_run:
            logger.info("Dry run: nothing written")
            return result
        if not result.has_changes:
            logger.info("Nothing to save")
            return result

        merged = result.merge_into(document.restaurants)
        expected = document.version if self.check_version else None
        await self.store.save_restaurants(merged, expected_version=expected)
        return result
