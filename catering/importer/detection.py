"""
Id detection for pasted Google links: spreadsheets and Drive folders.
"""
import re
from typing import List, Optional, Pattern


class LinkDetector:
    """Extracts resource ids from share links, trying patterns in order"""

    SPREADSHEET_PATTERNS = [
        r'/spreadsheets/d/([a-zA-Z0-9_-]+)',
        r'^([a-zA-Z0-9_-]+)$',
    ]

    FOLDER_PATTERNS = [
        r'/folders/([a-zA-Z0-9_-]+)',
        r'[?&]id=([a-zA-Z0-9_-]+)',
        r'^([a-zA-Z0-9_-]{25,})$',
    ]

    def __init__(self):
        self.spreadsheet_regexes = [re.compile(p) for p in self.SPREADSHEET_PATTERNS]
        self.folder_regexes = [re.compile(p) for p in self.FOLDER_PATTERNS]

    def _first_match(self, regexes: List[Pattern], value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        value = value.strip()
        for regex in regexes:
            match = regex.search(value)
            if match:
                return match.group(1)
        return None

    def spreadsheet_id(self, url: str) -> Optional[str]:
        """Spreadsheet id from a sheet URL or a bare id"""
        return self._first_match(self.spreadsheet_regexes, url)

    def folder_id(self, url: str) -> Optional[str]:
        """Drive folder id from a folder URL, an ``?id=`` link or a bare id"""
        return self._first_match(self.folder_regexes, url)


_detector = LinkDetector()


def extract_spreadsheet_id(url: str) -> Optional[str]:
    return _detector.spreadsheet_id(url)


def extract_folder_id(url: str) -> Optional[str]:
    return _detector.folder_id(url)
