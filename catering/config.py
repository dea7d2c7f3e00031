"""
Runtime configuration, read from the environment and an optional .env file.
"""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


DEFAULT_DATA_DIR = "cache/catering"
DEFAULT_WHATSAPP_NUMBER = "971528355939"


@dataclass
class Settings:
    """Everything the services need that is not stored in the remote document."""
    gist_id: Optional[str] = None
    github_token: Optional[str] = None
    google_api_key: Optional[str] = None
    firebase_storage_bucket: Optional[str] = None
    data_dir: str = DEFAULT_DATA_DIR
    whatsapp_number: str = DEFAULT_WHATSAPP_NUMBER
    log_level: str = "INFO"

    def require_google_api_key(self) -> str:
        if not self.google_api_key:
            raise ValueError(
                "GOOGLE_API_KEY not found in environment variables. "
                "Set it in .env file or export it."
            )
        return self.google_api_key

    def require_storage_bucket(self) -> str:
        if not self.firebase_storage_bucket:
            raise ValueError(
                "FIREBASE_STORAGE_BUCKET not found in environment variables. "
                "Set it in .env file or export it (e.g. my-project.appspot.com)."
            )
        return self.firebase_storage_bucket


def load_settings() -> Settings:
    """Load environment variables (and .env) into Settings."""
    load_dotenv()
    return Settings(
        gist_id=os.getenv("CATERING_GIST_ID") or None,
        github_token=os.getenv("GITHUB_TOKEN") or None,
        google_api_key=os.getenv("GOOGLE_API_KEY") or None,
        firebase_storage_bucket=os.getenv("FIREBASE_STORAGE_BUCKET") or None,
        data_dir=os.getenv("CATERING_DATA_DIR", DEFAULT_DATA_DIR),
        whatsapp_number=os.getenv("WHATSAPP_NUMBER", DEFAULT_WHATSAPP_NUMBER),
        log_level=os.getenv("CATERING_LOG_LEVEL", "INFO"),
    )
