"""
Local key-value storage for state that must survive restarts but never leaves
this machine: credentials and the backup list.
"""
import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class LocalStore:
    """Persist small JSON values, one file per key"""

    def __init__(self, data_dir: str = "cache/catering"):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def get_path(self, key: str) -> Path:
        """Get file path for key"""
        return self.data_dir / f"{key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        """Load a value, or ``default`` when missing or unreadable"""
        path = self.get_path(key)

        if not path.exists():
            return default

        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Error loading %s from %s: %s", key, path, e)
            return default

    def set(self, key: str, value: Any):
        """Save a value, replacing the file atomically"""
        path = self.get_path(key)
        tmp_path = path.with_suffix('.json.tmp')

        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(value, f, indent=2, ensure_ascii=False, default=str)
        tmp_path.replace(path)

    def delete(self, key: str):
        self.get_path(key).unlink(missing_ok=True)

    def has(self, key: str) -> bool:
        return self.get_path(key).exists()
