"""
GoHighLevel contacts client.

Pages through /contacts/ for one location using startAfterId cursors and keeps
only contacts created inside the rolling window that carry the sale tag.

Loop/stall detection is best effort: the API gives no monotonic cursor or total
count, so pagination stops when a page starts with an already seen contact, when
a page repeats more than `duplicate_threshold` seen ids, when the cursor stops
moving, or after `max_pages` pages.
"""

from __future__ import annotations

import json
import re
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

import requests

from sync_config import SyncConfig

# Seconds fraction of an ISO timestamp; fromisoformat wants exactly 6 digits before 3.11
_FRACTION = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d+)")


def parse_contact_date(contact: Dict[str, Any]) -> Optional[datetime]:
    """Parse dateAdded (or createdAt) into an aware UTC datetime."""
    raw = contact.get("dateAdded") or contact.get("createdAt")
    if not raw or not isinstance(raw, str):
        return None
    try:
        text = raw.strip().replace("Z", "+00:00")
        text = _FRACTION.sub(lambda m: f"{m.group(1)}.{m.group(2)[:6].ljust(6, '0')}", text)
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def has_tag(contact: Dict[str, Any], tag: str) -> bool:
    tags = contact.get("tags") or []
    target = tag.lower()
    return any(isinstance(t, str) and t.lower() == target for t in tags)


def is_recent_sale(contact: Dict[str, Any], start_date: datetime, tag: str) -> bool:
    created = parse_contact_date(contact)
    if created is None:
        return False
    return created >= start_date and has_tag(contact, tag)


class GHLClient:
    """Minimal client for the GHL contacts listing endpoint."""

    def __init__(self, api_key: str, config: SyncConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Version": config.api_version,
            "Content-Type": "application/json",
        })

    def _get_page(self, location_id: str, start_after_id: Optional[str]) -> Dict[str, Any]:
        params = {"locationId": location_id, "limit": self.config.page_size}
        if start_after_id:
            params["startAfterId"] = start_after_id

        response = self.session.get(
            f"{self.config.base_url}/contacts/",
            params=params,
            timeout=self.config.request_timeout,
        )
        response.raise_for_status()
        return response.json()

    def get_contacts(self, location_id: str, location_name: str, start_date: datetime) -> List[Dict[str, Any]]:
        """
        Fetch every contact for a location that has the sale tag and was created
        on or after start_date. Errors other than 429 end the fetch early and the
        contacts collected so far are returned.
        """
        contacts: List[Dict[str, Any]] = []
        seen_ids: Set[str] = set()
        start_after_id: Optional[str] = None
        page = 1

        print(f"  Fetching contacts for {location_name}...")

        while True:
            try:
                data = self._get_page(location_id, start_after_id)
            except requests.HTTPError as e:
                status = e.response.status_code if e.response is not None else None
                if status == 429:
                    print(f"  ⚠ Rate limited, waiting {self.config.rate_limit_wait:g} seconds...")
                    time.sleep(self.config.rate_limit_wait)
                    continue
                print(f"  ✗ Error fetching contacts: HTTP {status}")
                if e.response is not None:
                    print(f"  Response: {_response_body(e.response)[:220]}")
                break
            except requests.RequestException as e:
                print(f"  ✗ Error fetching contacts: {e}")
                break

            if not isinstance(data, dict):
                print(f"  ✗ Unexpected response body on page {page}, stopping")
                break

            page_contacts = data.get("contacts") or []
            if not isinstance(page_contacts, list) or not all(isinstance(c, dict) for c in page_contacts):
                print(f"  ✗ Malformed contacts on page {page}, stopping")
                break

            if not page_contacts:
                print(f"    Page {page}: No more contacts")
                break

            # Server re-served a page we've already consumed
            if page_contacts[0].get("id") in seen_ids:
                print(f"    Page {page}: Detected loop (duplicate contacts), stopping")
                break

            duplicates_in_page = 0
            for contact in page_contacts:
                contact_id = contact.get("id")
                if contact_id in seen_ids:
                    duplicates_in_page += 1
                seen_ids.add(contact_id)

            if duplicates_in_page > self.config.duplicate_threshold:
                print(f"    Page {page}: Too many duplicates ({duplicates_in_page}), stopping")
                break

            filtered = [c for c in page_contacts if is_recent_sale(c, start_date, self.config.sale_tag)]
            contacts.extend(filtered)

            print(
                f"    Page {page}: {len(page_contacts)} contacts, {len(filtered)} with sale tag "
                f"in date range (total collected: {len(contacts)})"
            )

            # Cursor comes from the raw page, not the filtered subset
            new_start_after_id = page_contacts[-1].get("id")
            if not new_start_after_id or new_start_after_id == start_after_id:
                print("    No more pages (cursor unchanged)")
                break

            if page >= self.config.max_pages:
                print(f"    Safety limit reached ({self.config.max_pages} pages)")
                break

            start_after_id = new_start_after_id
            page += 1

            time.sleep(self.config.page_delay)

        print(f"  Total contacts found for {location_name}: {len(contacts)}")
        print(f"  Total unique contacts scanned: {len(seen_ids)}")
        return contacts


def _response_body(response: requests.Response) -> str:
    try:
        return json.dumps(response.json())
    except ValueError:
        return response.text or ""
