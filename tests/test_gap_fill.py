from __future__ import annotations

from conftest import MERGE_DATE, customer

from customer_merge.steps.gap_fill import GapFillingMatcher, contacts_from_rows
from customer_merge.stores import InMemoryCustomerStore


def _store() -> InMemoryCustomerStore:
    return InMemoryCustomerStore(
        [
            customer("c1", "NC-1", "Boulangerie Martin", phoneNumber="06 12 34 56 78"),
            customer("c2", "NC-2", "Jean Dupont", firstName="Jean", lastName="Dupont"),
            customer("c3", "C0003", "Cave Petit", Email="cave@example.com", phoneNumber="0611111111"),
        ]
    )


def _rows() -> list[dict[str, str]]:
    return [
        {
            "Record ID": "101",
            "Email": "Martin@Example.com",
            "Phone Number": "+33 6 12 34 56 78",
            "First Name": "Paul",
            "Last Name": "Martin",
        },
        {"Record ID": "102", "Email": "jean@example.com", "Phone Number": "", "First Name": "jean", "Last Name": "DUPONT"},
        {"Record ID": "103", "Email": "cave@example.com", "Phone Number": "07 22 22 22 22", "First Name": "", "Last Name": ""},
        {"Record ID": "104", "Email": "", "Phone Number": "0612345678", "First Name": "", "Last Name": ""},
        {"Record ID": "105", "Email": "other@example.com", "Phone Number": "0612345678", "First Name": "", "Last Name": ""},
    ]


def _matcher(store: InMemoryCustomerStore) -> GapFillingMatcher:
    return GapFillingMatcher(store, clock=lambda: MERGE_DATE)


def test_contacts_need_an_email_and_something_to_match() -> None:
    rows = _rows() + [{"Record ID": "106", "Email": "lonely@example.com", "Phone Number": ""}]

    contacts = contacts_from_rows(rows)

    assert [contact.external_id for contact in contacts] == ["101", "102", "103", "105"]
    assert contacts[0].email == "martin@example.com"
    assert contacts[0].phone == "612345678"
    assert contacts[0].original_phone == "+33 6 12 34 56 78"


def test_fill_summary_counts() -> None:
    results = _matcher(_store()).fill(contacts_from_rows(_rows()))

    assert results.total_contacts == 4
    assert results.emails_updated == 2
    assert results.matched_by_phone == 1
    assert results.matched_by_name == 1
    assert results.no_matches == 2
    assert results.phones_added_to_existing == 1
    assert results.operations_executed == 3
    assert results.errors == []


def test_phone_match_fills_email_and_missing_fields() -> None:
    store = _store()
    _matcher(store).fill(contacts_from_rows(_rows()))

    filled = store.get("c1")
    assert filled["Email"] == "martin@example.com"
    assert filled["firstName"] == "Paul"
    assert filled["lastName"] == "Martin"
    assert filled["hubspotId"] == "101"
    assert filled["phoneNumber"] == "06 12 34 56 78"
    assert filled["updatedAt"] == MERGE_DATE


def test_name_match_keeps_existing_names() -> None:
    store = _store()
    _matcher(store).fill(contacts_from_rows(_rows()))

    filled = store.get("c2")
    assert filled["Email"] == "jean@example.com"
    assert filled["firstName"] == "Jean"
    assert filled["lastName"] == "Dupont"
    assert filled["hubspotId"] == "102"


def test_name_match_falls_back_to_display_name() -> None:
    store = InMemoryCustomerStore([customer("c9", "NC-9", "Lea Moreau")])
    rows = [{"Record ID": "9", "Email": "lea@example.com", "First Name": "Lea", "Last Name": "Moreau"}]

    results = _matcher(store).fill(contacts_from_rows(rows))

    assert results.matched_by_name == 1
    assert store.get("c9")["Email"] == "lea@example.com"


def test_each_customer_absorbs_one_contact() -> None:
    store = _store()
    rows = [
        {"Record ID": "1", "Email": "first@example.com", "Phone Number": "0612345678"},
        {"Record ID": "2", "Email": "second@example.com", "Phone Number": "+33612345678"},
    ]

    results = _matcher(store).fill(contacts_from_rows(rows))

    assert results.emails_updated == 1
    assert results.no_matches == 1
    assert store.get("c1")["Email"] == "first@example.com"


def test_short_phones_never_match() -> None:
    store = InMemoryCustomerStore([customer("c1", "NC-1", "Kiosque", phoneNumber="12345")])
    rows = [{"Record ID": "1", "Email": "kiosque@example.com", "Phone Number": "12345"}]

    results = _matcher(store).fill(contacts_from_rows(rows))

    assert results.no_matches == 1
    assert store.get("c1").get("Email") is None


def test_known_email_gains_new_phone_once() -> None:
    store = _store()
    _matcher(store).fill(contacts_from_rows(_rows()))

    existing = store.get("c3")
    assert existing["additionalPhones"] == ["07 22 22 22 22"]
    assert existing["phoneNumber"] == "0611111111"


def test_second_fill_changes_nothing() -> None:
    store = _store()
    contacts = contacts_from_rows(_rows())
    _matcher(store).fill(contacts)
    before = store.documents()

    results = _matcher(store).fill(contacts)

    assert results.emails_updated == 0
    assert results.phones_added_to_existing == 0
    assert results.operations_executed == 0
    assert store.documents() == before
