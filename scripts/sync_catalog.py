#!/usr/bin/env python3
import argparse
import sys
from pathlib import Path

import httpx

from aldrin.core.errors import CatalogLoadError
from aldrin.core.logging import configure_logging
from aldrin.core.settings import settings
from aldrin.services.sync import SupabaseWriter, read_export


def main(argv=None):
    parser = argparse.ArgumentParser(description='Upsert albums.csv and tracks.csv into Supabase')
    parser.add_argument('directory', nargs='?', default=str(settings.CSV_DIR), help='Directory holding the CSV export')
    parser.add_argument('--url', default=settings.SUPABASE_URL, help='Supabase project URL')
    parser.add_argument('--key', default=settings.SUPABASE_KEY, help='Supabase service key')
    parser.add_argument('--dry-run', action='store_true', help='Only report what would be written')

    args = parser.parse_args(argv)
    configure_logging(settings)

    try:
        albums, tracks = read_export(Path(args.directory))
    except (CatalogLoadError, ValueError) as e:
        print(f"Cannot read export: {e}")
        return 1

    print(f"Found {len(albums)} albums and {len(tracks)} tracks.")
    if args.dry_run:
        return 0

    if not args.url or not args.key:
        print("Supabase URL and key are required (SUPABASE_URL / SUPABASE_KEY or --url / --key)")
        return 1

    with httpx.Client(timeout=settings.SUPABASE_TIMEOUT) as client:
        try:
            counts = SupabaseWriter(args.url, args.key, client).sync(albums, tracks)
        except httpx.HTTPError as e:
            print(f"Sync failed: {e}")
            return 1

    print(f"Sync complete: {counts['albums']} albums, {counts['tracks']} tracks.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
