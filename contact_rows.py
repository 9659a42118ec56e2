"""Turn GHL contacts into rows for the dashboard's Raw Data tab."""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from ghl_client import parse_contact_date
from sync_config import CustomFieldKeys

OUTPUT_HEADER = (
    "Contact ID",
    "Location",
    "Name",
    "Email",
    "Signup Date",
    "Tour Team Member",
    "Sale Team Member",
    "Same Day Sale",
    "Day One Booked",
    "Sale",
    "Month",
    "Year",
)

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

# Column positions read by the dashboard formulas
TOUR_MEMBER_COL = 5
SALE_MEMBER_COL = 6

_WHITESPACE = re.compile(r"\s+")


def _custom_fields(contact: Dict[str, Any]) -> List[Dict[str, Any]]:
    fields = contact.get("customFields") or []
    if not isinstance(fields, list):
        return []
    return [f for f in fields if isinstance(f, dict)]


def key_matches(field: Dict[str, Any], key: str) -> bool:
    return field.get("key") == key


def id_contains(field: Dict[str, Any], key: str) -> bool:
    return key in str(field.get("id") or "")


def name_matches(field: Dict[str, Any], key: str) -> bool:
    """Display name "Sale Team Member" matches key sale_team_member."""
    name = field.get("name")
    return isinstance(name, str) and _WHITESPACE.sub("_", name.lower()) == key


CUSTOM_FIELD_MATCHERS: Tuple[Callable[[Dict[str, Any], str], bool], ...] = (
    key_matches,
    id_contains,
    name_matches,
)


def from_property(contact: Dict[str, Any], key: str) -> Optional[Any]:
    return contact.get(key) or None


def from_custom_fields(contact: Dict[str, Any], key: str) -> Optional[Any]:
    for field in _custom_fields(contact):
        if any(matches(field, key) for matches in CUSTOM_FIELD_MATCHERS):
            return field.get("value") or ""
    return None


# Tried in order; the first strategy that returns something other than None wins.
FIELD_RESOLVERS: Tuple[Callable[[Dict[str, Any], str], Optional[Any]], ...] = (
    from_property,
    from_custom_fields,
)


def resolve_custom_field(contact: Dict[str, Any], key: str) -> Any:
    """
    Look up a custom field value on a contact.

    1. direct property on the contact, if truthy
    2. first customFields entry whose key matches, whose id contains the key,
       or whose snake_cased display name matches
    3. empty string
    """
    for resolver in FIELD_RESOLVERS:
        value = resolver(contact, key)
        if value is not None:
            return value
    return ""


def full_name(contact: Dict[str, Any]) -> str:
    return " ".join(f"{contact.get('firstName') or ''} {contact.get('lastName') or ''}".split())


def transform_contact_to_row(
    contact: Dict[str, Any],
    location_name: str,
    fields: CustomFieldKeys = CustomFieldKeys(),
) -> Tuple[Any, ...]:
    """Build the 12-column Raw Data row for one contact."""
    signup = parse_contact_date(contact)
    if signup is not None:
        signup_date = signup.date().isoformat()
        month = MONTH_NAMES[signup.month - 1]
        year = signup.year
    else:
        signup_date, month, year = "", "", ""

    return (
        contact.get("id") or "",
        location_name,
        full_name(contact),
        contact.get("email") or "",
        signup_date,
        resolve_custom_field(contact, fields.tour_team_member),
        resolve_custom_field(contact, fields.sale_team_member),
        resolve_custom_field(contact, fields.same_day_sale) or "No",
        resolve_custom_field(contact, fields.day_one_booked) or "No",
        "Yes",
        month,
        year,
    )


class TeamMembers(NamedTuple):
    sale_members: List[str]
    tour_members: List[str]


def extract_unique_team_members(rows: Iterable[Sequence[Any]]) -> TeamMembers:
    """Distinct non-empty team member names, as strings, sorted."""
    sale_members = set()
    tour_members = set()

    for row in rows:
        if row[SALE_MEMBER_COL]:
            sale_members.add(str(row[SALE_MEMBER_COL]))
        if row[TOUR_MEMBER_COL]:
            tour_members.add(str(row[TOUR_MEMBER_COL]))

    return TeamMembers(sale_members=sorted(sale_members), tour_members=sorted(tour_members))
