"""
Copy the images of a shared Google Drive folder into Firebase Storage and
print their public URLs.
"""
import argparse
import asyncio
import sys
from typing import List, Optional

from tqdm import tqdm

from ..config import load_settings
from ..context import CateringContext
from ..errors import CateringError
from ..logging_config import setup_logging


async def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Sync images from Google Drive to Firebase Storage')
    parser.add_argument(
        '--folder',
        required=True,
        help='Drive folder URL or ID'
    )
    parser.add_argument(
        '--dest',
        default='restaurants',
        help='Destination folder in the storage bucket'
    )
    args = parser.parse_args(argv)

    settings = load_settings()
    setup_logging(settings.log_level)
    try:
        settings.require_google_api_key()
        settings.require_storage_bucket()
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    context = CateringContext(settings).init()
    sync = context.drive_sync

    folder_id = sync.extract_folder_id(args.folder)
    if not folder_id:
        print(f"Could not find a folder ID in {args.folder!r}")
        context.clear()
        return 1

    progress = tqdm(desc="Syncing images", unit="file")

    def on_progress(current: int, total: int, name: str):
        progress.total = total
        progress.set_postfix_str(name)
        progress.update(1)

    try:
        result = await sync.sync_folder_to_storage(folder_id, args.dest, on_progress)
    except CateringError as e:
        print(f"Sync failed: {e}")
        return 1
    finally:
        progress.close()
        context.clear()

    print(f"\nUploaded {len(result.success)} image(s):")
    for url in result.success:
        print(f"  {url}")

    if result.failed:
        print(f"\n{len(result.failed)} file(s) failed:")
        for failure in result.failed:
            print(f"  - {failure.name}: {failure.error}")
        return 1
    return 0


def run():
    sys.exit(asyncio.run(main()))


if __name__ == '__main__':
    run()
