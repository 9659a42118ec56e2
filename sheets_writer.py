"""Replace the body of the dashboard's Raw Data tab via the Sheets API."""

from __future__ import annotations

import json
import random
import time
from typing import Any, Callable, List, Sequence

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from sync_config import BODY_RANGE, SCOPES, ConfigError, SyncConfig

# Sheets quota / availability errors worth another attempt
RETRYABLE_STATUSES = (429, 503)
MAX_ATTEMPTS = 5
INITIAL_BACKOFF = 1.0

# Sheets calls issued this run, reported in the end-of-run metrics
api_call_count = 0


def backoff_seconds(attempt: int) -> float:
    """1s, 2s, 4s, ... plus up to 100ms of jitter."""
    return INITIAL_BACKOFF * (2 ** (attempt - 1)) + random.random() * 0.1


def execute_with_retry(func: Callable[[], Any], operation_name: str, max_attempts: int = MAX_ATTEMPTS) -> Any:
    """
    Run one Sheets request (clear or update). Rate limits and 503s are retried
    with backoff up to max_attempts; every other HttpError propagates at once.
    """
    global api_call_count
    attempt = 1
    while True:
        api_call_count += 1
        print(f"  Sheets call #{api_call_count}: {operation_name}")
        try:
            return func()
        except HttpError as e:
            status = e.resp.status
            if status not in RETRYABLE_STATUSES:
                print(f"  ✗ {operation_name} failed: HTTP {status}")
                raise
            if attempt >= max_attempts:
                print(f"  ✗ {operation_name} still failing after {attempt} attempts")
                raise
            wait_time = backoff_seconds(attempt)
            print(f"  ⚠ {operation_name}: HTTP {status} (attempt {attempt}/{max_attempts}), waiting {wait_time:.2f}s...")
            time.sleep(wait_time)
            attempt += 1


def get_service(config: SyncConfig):
    """
    Get Google Sheets service with credentials.
    Supports both GitHub Actions (GOOGLE_CREDENTIALS JSON) and local (key file) authentication.
    """
    if config.credentials_json:
        try:
            service_account_info = json.loads(config.credentials_json)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Error parsing service account JSON: {e}")
        creds = Credentials.from_service_account_info(service_account_info, scopes=SCOPES)
    elif config.service_account_file:
        creds = Credentials.from_service_account_file(config.service_account_file, scopes=SCOPES)
    else:
        raise ConfigError("No Google service account credentials configured")

    return build("sheets", "v4", credentials=creds)


def clear_and_write_data(service, spreadsheet_id: str, sheet_name: str, rows: Sequence[Sequence[Any]]):
    """
    Clear the body of a sheet (row 2 down, header kept) and write rows from A2
    in a single update. Writing no rows leaves the body empty.
    """
    print(f"Clearing {sheet_name}!{BODY_RANGE}...")

    def _clear():
        return service.spreadsheets().values().clear(
            spreadsheetId=spreadsheet_id,
            range=f"{sheet_name}!{BODY_RANGE}",
            body={}
        ).execute()

    execute_with_retry(_clear, f"clear_body({sheet_name})")

    if not rows:
        print(f"  No data to write to {sheet_name}")
        return

    values: List[List[Any]] = [list(row) for row in rows]

    def _write():
        return service.spreadsheets().values().update(
            spreadsheetId=spreadsheet_id,
            range=f"{sheet_name}!A2",
            valueInputOption="USER_ENTERED",
            body={"values": values}
        ).execute()

    execute_with_retry(_write, f"write_rows({sheet_name})")
    print(f"  ✓ Wrote {len(values)} rows to {sheet_name}")
