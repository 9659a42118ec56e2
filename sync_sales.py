#!/usr/bin/env python3
"""Sync GHL sales contacts from every location into the dashboard's Raw Data tab."""

from __future__ import annotations

import os
import sys
import time
from datetime import datetime, timezone
from typing import Any, Callable, List, Mapping, Optional, Tuple

from dotenv import load_dotenv
from googleapiclient.errors import HttpError

import sheets_writer
from contact_rows import TeamMembers, extract_unique_team_members, transform_contact_to_row
from ghl_client import GHLClient
from sync_config import ConfigError, SyncConfig, api_key_env_for, load_config, resolve_api_key, window_start


def sync_locations(
    config: SyncConfig,
    start_date: datetime,
    environ: Optional[Mapping[str, str]] = None,
    client_factory: Callable[[str, SyncConfig], Any] = GHLClient,
) -> Tuple[List[Tuple[Any, ...]], TeamMembers]:
    """
    Fetch and transform contacts for each configured location in turn.

    A location without an API key is skipped, and a location whose fetch fails
    contributes no rows; neither stops the run.
    """
    if environ is None:
        environ = os.environ

    all_rows: List[Tuple[Any, ...]] = []

    for location in config.locations:
        print(f"\nProcessing {location.name}...")

        api_key = resolve_api_key(config, location, environ)
        if not api_key:
            print(f"  ⚠ Skipping {location.name}: {api_key_env_for(config, location)} not set")
            continue

        try:
            client = client_factory(api_key, config)
            contacts = client.get_contacts(location.id, location.name, start_date)
            rows = [transform_contact_to_row(c, location.name, config.custom_fields) for c in contacts]
            all_rows.extend(rows)
            print(f"  ✓ Transformed {len(rows)} contacts")
        except Exception as e:
            print(f"  ✗ Failed to process {location.name}: {e}")

    return all_rows, extract_unique_team_members(all_rows)


def main(environ: Optional[Mapping[str, str]] = None) -> int:
    start_time = time.time()

    print("=" * 60)
    print("GHL → Google Sheets Sync")
    print(f"Started at: {datetime.now(timezone.utc).isoformat()}")
    print("=" * 60)

    try:
        config = load_config(environ)
        print("Configuration:")
        print(f"  • Locations: {len(config.locations)} ({config.credential_mode} credentials)")
        print(f"  • Rolling window: {config.days_back} days")
        print(f"  • Destination tab: {config.sheet_name}")

        service = sheets_writer.get_service(config)
        print("✓ Connected to Google Sheets API")

        start_date = window_start(config.days_back)
        print(f"\nFetching contacts from {start_date.date().isoformat()} to today")

        rows, team_members = sync_locations(config, start_date, environ)

        print("\n" + "-" * 60)
        print(f"Total contacts across all locations: {len(rows)}")
        print("-" * 60 + "\n")

        print("Writing to Google Sheets...")
        sheets_writer.clear_and_write_data(service, config.spreadsheet_id, config.sheet_name, rows)

        print(f"\nUnique Sale Team Members: {', '.join(team_members.sale_members) or '(none)'}")
        print(f"Unique Tour Team Members: {', '.join(team_members.tour_members) or '(none)'}")

        elapsed_time = time.time() - start_time
        print("\n📈 Performance Metrics:")
        print(f"  • Total rows written: {len(rows)}")
        print(f"  • Total Sheets API calls: {sheets_writer.api_call_count}")
        print(f"  • Total execution time: {elapsed_time:.2f} seconds")

        print("\n" + "=" * 60)
        print(f"✅ Sync completed at: {datetime.now(timezone.utc).isoformat()}")
        print("=" * 60)

    except ConfigError as e:
        print(f"\n✗ Configuration error: {e}")
        return 1
    except HttpError as e:
        print(f"\n✗ Google API Error: {e}")
        print(f"  Status: {e.resp.status}")
        import traceback
        traceback.print_exc()
        return 1
    except Exception as e:
        print(f"\n✗ Sync failed: {e}")
        import traceback
        traceback.print_exc()
        return 1

    return 0


def cli():
    load_dotenv()
    sys.exit(main())


if __name__ == "__main__":
    cli()
