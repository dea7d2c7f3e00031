"""
Repair a corrupted restaurant database in place.
"""
import argparse
import asyncio
import sys
from typing import List, Optional

from ..config import load_settings
from ..context import CateringContext
from ..logging_config import setup_logging
from ..store.repair import repair_database


async def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Repair the restaurant database')
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Report what would be fixed without saving'
    )
    args = parser.parse_args(argv)

    settings = load_settings()
    setup_logging(settings.log_level)
    context = CateringContext(settings).init()

    if not context.store.has_credentials() and not args.dry_run:
        print("Repair needs the Gist ID and a GitHub token. Run 'catering-admin credentials' first.")
        return 1

    try:
        report = await repair_database(context.store, write=not args.dry_run)
    finally:
        context.clear()

    print(f"\nSize: {report.original_size} → {report.repaired_size} characters")
    if report.fixed:
        print("\nFixed:")
        for line in report.fixed:
            print(f"  ✓ {line}")
    if report.errors:
        print("\nProblems:")
        for line in report.errors:
            print(f"  - {line}")

    print("\nRepair succeeded" if report.success else "\nRepair failed")
    return 0 if report.success else 1


def run():
    sys.exit(asyncio.run(main()))


if __name__ == '__main__':
    run()
