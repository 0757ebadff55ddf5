from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ContactColumns:
    """Column names of an external contact export."""

    record_id: str
    email: str
    phone: str
    first_name: str
    last_name: str


# Header row of the marketing platform's contact export.
HUBSPOT_CONTACT_COLUMNS = ContactColumns(
    record_id="Record ID",
    email="Email",
    phone="Phone Number",
    first_name="First Name",
    last_name="Last Name",
)
