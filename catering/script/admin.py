"""
Administration commands: database setup, credentials, restaurants and backups.
"""
import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from ..config import load_settings
from ..context import CateringContext
from ..errors import CateringError, DocumentNotFoundError
from ..logging_config import setup_logging


def _mask(token: Optional[str]) -> str:
    if not token:
        return "(not set)"
    return f"{token[:4]}…{token[-4:]}" if len(token) > 8 else "****"


class AdminCommands:
    """One method per sub-command"""

    def __init__(self, context: CateringContext):
        self.context = context
        self.store = context.store
        self.backups = context.backups

    async def init(self, args) -> int:
        created = await self.store.create_database(token=args.token, public=not args.private)
        print(f"Created database {created['document_id']}")
        if created["url"]:
            print(f"  {created['url']}")
        return 0

    async def credentials(self, args) -> int:
        if args.gist_id:
            token = args.token or self.store.access_token
            self.store.set_credentials(args.gist_id, token)
            print("Credentials saved")
            if not await self.store.test_connection():
                print("Warning: could not read the database with these credentials")
                return 1
            return 0

        if args.clear:
            self.store.clear_credentials()
            print("Credentials removed")
            return 0

        credentials = self.store.get_credentials()
        print(f"Gist ID: {credentials.document_id or '(not set)'}")
        print(f"Token:   {_mask(credentials.access_token)}")
        return 0

    async def list(self, args) -> int:
        document = await self.store.get_data()
        print(f"Database version {document.version}, {len(document.restaurants)} restaurant(s)")
        for restaurant in document.restaurants:
            hidden = " [hidden]" if restaurant.is_hidden else ""
            print(f"  {restaurant.id}  {restaurant.name} ({len(restaurant.menu_items)} items){hidden}")
        return 0

    async def delete(self, args) -> int:
        await self.store.delete_restaurant(args.restaurant_id)
        print(f"Deleted restaurant {args.restaurant_id}")
        return 0

    async def backups_list(self, args) -> int:
        entries = self.backups.list_all()
        if args.entity:
            entries = [e for e in entries if e.entity_id == args.entity]
        for entry in entries[-args.limit:]:
            print(f"{entry.date}  {entry.action:<6}  {entry.entity_name} ({entry.entity_id}): {entry.changes_summary}")
        print(f"\n{len(entries)} backup entr{'y' if len(entries) == 1 else 'ies'}")
        return 0

    async def restore(self, args) -> int:
        entry = self.backups.latest_for(args.restaurant_id)
        if entry is None:
            print(f"No backup found for {args.restaurant_id}")
            return 1

        restaurant = self.backups.restore(entry)
        try:
            await self.store.update_restaurant(restaurant)
        except DocumentNotFoundError:
            await self.store.add_restaurant(restaurant)
        print(f"Restored {restaurant.name} from backup of {entry.date}")
        return 0

    async def purge_backups(self, args) -> int:
        removed = self.backups.purge_older_than(args.days)
        print(f"Removed {removed} backup entries older than {args.days} days")
        return 0

    async def export_backups(self, args) -> int:
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(self.backups.export_json(), encoding="utf-8")
        print(f"Backups exported to {output}")
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Restaurant database administration')
    commands = parser.add_subparsers(dest='command', required=True)

    init = commands.add_parser('init', help='Create a new database Gist')
    init.add_argument('--token', help='GitHub token with gist scope (defaults to the saved one)')
    init.add_argument('--private', action='store_true', help='Create a secret Gist')
    init.set_defaults(handler='init')

    credentials = commands.add_parser('credentials', help='Show, set or clear saved credentials')
    credentials.add_argument('--gist-id', help='Database Gist ID')
    credentials.add_argument('--token', help='GitHub token')
    credentials.add_argument('--clear', action='store_true', help='Forget saved credentials')
    credentials.set_defaults(handler='credentials')

    commands.add_parser('list', help='List restaurants').set_defaults(handler='list')

    delete = commands.add_parser('delete', help='Delete a restaurant')
    delete.add_argument('restaurant_id')
    delete.set_defaults(handler='delete')

    backups = commands.add_parser('backups', help='List backup entries')
    backups.add_argument('--entity', help='Only entries for this restaurant ID')
    backups.add_argument('--limit', type=int, default=50, help='Show at most this many recent entries')
    backups.set_defaults(handler='backups_list')

    restore = commands.add_parser('restore', help='Restore a restaurant from its latest backup')
    restore.add_argument('restaurant_id')
    restore.set_defaults(handler='restore')

    purge = commands.add_parser('purge-backups', help='Delete old backup entries')
    purge.add_argument('--days', type=float, default=30, help='Keep entries younger than this')
    purge.set_defaults(handler='purge_backups')

    export = commands.add_parser('export-backups', help='Write all backup entries to a JSON file')
    export.add_argument('--output', default='output/backups.json')
    export.set_defaults(handler='export_backups')

    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    settings = load_settings()
    setup_logging(settings.log_level)
    context = CateringContext(settings).init()
    handler = getattr(AdminCommands(context), args.handler)

    try:
        return await handler(args)
    except CateringError as e:
        print(f"Error: {e}")
        return 1
    finally:
        context.clear()


def run():
    sys.exit(asyncio.run(main()))


if __name__ == '__main__':
    run()
