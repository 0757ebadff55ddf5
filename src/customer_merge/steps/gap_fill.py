from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any

from customer_merge.config import EngineConfig
from customer_merge.datasets.profiles import HUBSPOT_CONTACT_COLUMNS, ContactColumns
from customer_merge.interfaces import CustomerStore
from customer_merge.models import Customer, CustomerUpdate, ExternalContact, GapFillResults
from customer_merge.schema import CustomerField
from customer_merge.steps.cascade import utcnow
from customer_merge.steps.normalize import full_name_key, normalize_email, normalize_name, normalize_phone

logger = logging.getLogger(__name__)


def contacts_from_rows(
    rows: Iterable[Mapping[str, Any]],
    columns: ContactColumns = HUBSPOT_CONTACT_COLUMNS,
    config: EngineConfig | None = None,
) -> list[ExternalContact]:
    """Turn raw export rows into contacts; rows without an email or anything to match on are dropped."""
    config = config or EngineConfig()
    contacts: list[ExternalContact] = []
    for row in rows:
        original_phone = _cell(row, columns.phone)
        contact = ExternalContact(
            email=normalize_email(_cell(row, columns.email)),
            phone=normalize_phone(original_phone, config.country_prefix, config.national_length),
            original_phone=original_phone,
            first_name=_cell(row, columns.first_name),
            last_name=_cell(row, columns.last_name),
            external_id=_cell(row, columns.record_id),
        )
        if contact.email and (contact.phone or contact.first_name or contact.last_name):
            contacts.append(contact)
    return contacts


class GapFillingMatcher:
    """Fills missing emails and phones on existing customers from an external contact list.

    Phase 1 hands each contact's email to the first emailless customer that
    shares a phone number, falling back to an exact full-name match. Each
    customer absorbs at most one contact per run. Phase 2 appends the phones
    of contacts whose email is already on a customer to that customer's
    additional phones. Customers are only ever updated, never created or
    removed.
    """

    def __init__(
        self,
        customers: CustomerStore,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._customers = customers
        self._config = config or EngineConfig()
        self._clock = clock

    def _phone(self, raw: object) -> str:
        return normalize_phone(raw, self._config.country_prefix, self._config.national_length)

    def fill(self, contacts: Sequence[ExternalContact]) -> GapFillResults:
        results = GapFillResults(total_contacts=len(contacts))
        without_email: list[Customer] = []
        with_email: list[Customer] = []
        for document in self._customers.iter_all():
            customer = Customer.from_document(document)
            (with_email if normalize_email(customer.email) else without_email).append(customer)
        logger.info(
            "Gap filling %d contacts against %d customers without email and %d with email",
            len(contacts),
            len(without_email),
            len(with_email),
        )

        now = self._clock()
        updates = self._assign_emails(contacts, without_email, results, now)
        updates.extend(self._add_phones(contacts, with_email, results, now))

        if updates:
            logger.info("Executing %d update operations", len(updates))
            write = self._customers.bulk_update(updates)
            results.errors.extend(write.errors)
            logger.info("Bulk update completed: matched=%d modified=%d", write.matched, write.modified)
        results.operations_executed = len(updates)
        return results

    def _assign_emails(
        self,
        contacts: Sequence[ExternalContact],
        customers: list[Customer],
        results: GapFillResults,
        now: datetime,
    ) -> list[CustomerUpdate]:
        by_phone: dict[str, list[int]] = defaultdict(list)
        by_name: dict[str, list[int]] = defaultdict(list)
        by_pair: dict[tuple[str, str], list[int]] = defaultdict(list)
        for position, customer in enumerate(customers):
            phones = {self._phone(customer.phone), *(self._phone(p) for p in customer.additional_phones)}
            for phone in phones - {""}:
                by_phone[phone].append(position)
            names = {full_name_key(customer.first_name, customer.last_name), normalize_name(customer.display_name)}
            for name in names - {""}:
                by_name[name].append(position)
            first, last = normalize_name(customer.first_name), normalize_name(customer.last_name)
            if first and last:
                by_pair[(first, last)].append(position)

        claimed: set[int] = set()
        updates: list[CustomerUpdate] = []
        for contact in contacts:
            position = None
            match_type = ""
            if len(contact.phone) >= self._config.min_phone_match_length:
                position = _first_unclaimed(claimed, by_phone.get(contact.phone, ()))
                match_type = "phone"
            if position is None and contact.first_name and contact.last_name:
                pair = (normalize_name(contact.first_name), normalize_name(contact.last_name))
                position = _first_unclaimed(
                    claimed,
                    by_name.get(full_name_key(contact.first_name, contact.last_name), ()),
                    by_pair.get(pair, ()),
                )
                match_type = "name"
            if position is None:
                results.no_matches += 1
                continue

            claimed.add(position)
            customer = customers[position]
            if match_type == "phone":
                results.matched_by_phone += 1
            else:
                results.matched_by_name += 1
            results.emails_updated += 1
            updates.append(CustomerUpdate(doc_id=customer.doc_id, set_fields=_email_fill(customer, contact, now)))
            logger.info("Matched by %s: %s -> %s", match_type, customer.identifier, contact.email)
        return updates

    def _add_phones(
        self,
        contacts: Sequence[ExternalContact],
        customers: list[Customer],
        results: GapFillResults,
        now: datetime,
    ) -> list[CustomerUpdate]:
        phones_by_email: dict[str, list[str]] = defaultdict(list)
        for contact in contacts:
            if contact.email and contact.original_phone:
                phones_by_email[contact.email].append(contact.original_phone)

        updates: list[CustomerUpdate] = []
        for customer in customers:
            candidates = phones_by_email.get(normalize_email(customer.email))
            if not candidates:
                continue
            known = {self._phone(p) for p in (customer.phone, *customer.additional_phones) if p}
            new_phones: list[str] = []
            for phone in candidates:
                core = self._phone(phone)
                if not core or core in known:
                    continue
                known.add(core)
                new_phones.append(phone.strip())
            if not new_phones:
                continue
            results.phones_added_to_existing += 1
            updates.append(
                CustomerUpdate(
                    doc_id=customer.doc_id,
                    set_fields={CustomerField.UPDATED_AT.value: now},
                    add_to_set={CustomerField.ADDITIONAL_PHONES.value: new_phones},
                )
            )
            logger.info("Added phones to %s: %s", customer.identifier, ", ".join(new_phones))
        return updates


def _email_fill(customer: Customer, contact: ExternalContact, now: datetime) -> dict[str, Any]:
    fields: dict[str, Any] = {
        CustomerField.EMAIL.value: contact.email,
        CustomerField.UPDATED_AT.value: now,
    }
    if not customer.first_name and contact.first_name:
        fields[CustomerField.FIRST_NAME.value] = contact.first_name
    if not customer.last_name and contact.last_name:
        fields[CustomerField.LAST_NAME.value] = contact.last_name
    if not customer.phone and contact.original_phone:
        fields[CustomerField.PHONE.value] = contact.original_phone
    if not customer.external_id and contact.external_id:
        fields[CustomerField.EXTERNAL_ID.value] = contact.external_id
    return fields


def _first_unclaimed(claimed: set[int], *position_lists: Sequence[int]) -> int | None:
    available = [p for positions in position_lists for p in positions if p not in claimed]
    return min(available) if available else None


def _cell(row: Mapping[str, Any], column: str) -> str:
    value = row.get(column)
    if value is None:
        return ""
    return str(value).strip()
