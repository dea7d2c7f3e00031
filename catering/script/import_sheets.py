"""
Import restaurant menus from a Google Sheets spreadsheet into the database.

Each tab of the spreadsheet is one restaurant. New restaurants are created,
existing ones get new and changed menu items; nothing is ever deleted.
"""
import argparse
import asyncio
import sys
from typing import List, Optional

from ..config import load_settings
from ..context import CateringContext
from ..errors import CateringError
from ..logging_config import setup_logging
from ..models import ImportResult


def print_result(result: ImportResult, dry_run: bool):
    print(f"\n{'Dry run' if dry_run else 'Import'} finished:")
    print(f"  New restaurants:     {result.added_count}")
    for restaurant in result.new_restaurants:
        print(f"    + {restaurant.name} ({len(restaurant.menu_items)} items)")
    print(f"  Updated restaurants: {result.updated_count}")
    for restaurant in result.updated_restaurants:
        print(f"    ~ {restaurant.name}")
    print(f"  Items added:         {result.items_added_count}")
    print(f"  Items updated:       {result.items_updated_count}")

    if result.errors:
        print(f"\n{len(result.errors)} issue(s):")
        for error in result.errors:
            print(f"  - {error}")


async def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Import restaurant menus from Google Sheets')
    parser.add_argument(
        '--spreadsheet',
        required=True,
        help='Spreadsheet URL or ID'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Show what would change without writing to the database'
    )
    parser.add_argument(
        '--api-key',
        help='Google API key (defaults to GOOGLE_API_KEY)'
    )
    args = parser.parse_args(argv)

    settings = load_settings()
    setup_logging(settings.log_level)
    if not args.api_key:
        try:
            settings.require_google_api_key()
        except ValueError as e:
            print(f"Error: {e}")
            return 1

    context = CateringContext(settings).init()
    try:
        result = await context.importer.run(args.spreadsheet, dry_run=args.dry_run, api_key=args.api_key)
    except CateringError as e:
        print(f"Import failed: {e}")
        return 1
    finally:
        context.clear()

    print_result(result, args.dry_run)
    return 0


def run():
    sys.exit(asyncio.run(main()))


if __name__ == '__main__':
    run()
