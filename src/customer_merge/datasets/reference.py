from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any

from customer_merge.schema import DEFAULT_DEPENDENTS, CustomerField, RecordKind

_TRADES = [
    "Boulangerie",
    "Pharmacie",
    "Garage",
    "Restaurant",
    "Fromagerie",
    "Librairie",
    "Cave",
    "Fleuriste",
]
_OWNERS = [
    "Martin",
    "Bernard",
    "Dubois",
    "Thomas",
    "Robert",
    "Richard",
    "Petit",
    "Durand",
    "Leroy",
    "Moreau",
]
_TOWNS = ["Lyon", "Nantes", "Lille", "Rennes", "Dijon", "Tours"]
_FIRST_NAMES = ["Camille", "Louis", "Chloe", "Hugo", "Lea", "Jules", "Manon", "Arthur"]

# Authoritative codes are "C" plus exactly four digits.
MAX_AUTHORITATIVE_CUSTOMERS = 9999


@dataclass
class ReferenceDataset:
    customers: list[dict[str, Any]] = field(default_factory=list)
    records: dict[RecordKind, list[dict[str, Any]]] = field(
        default_factory=lambda: {kind: [] for kind in RecordKind}
    )


class ReferenceDatasetGenerator:
    """Generate a synthetic CRM snapshot with intentional cross-source duplicates.

    Every authoritative customer may get a provisional twin whose name differs
    only in case and spacing; a share of those twins come in pairs (an
    ambiguous group) and a share of authoritative names are reused (an
    authoritative duplicate group). Dependent records are spread over all
    customers.
    """

    def __init__(self, seed: int = 7) -> None:
        self._rng = random.Random(seed)

    def generate(
        self,
        size: int,
        duplicate_rate: float = 0.3,
        ambiguous_rate: float = 0.1,
        max_records_per_kind: int = 5,
    ) -> ReferenceDataset:
        if size > MAX_AUTHORITATIVE_CUSTOMERS:
            raise ValueError(
                f"size {size} exceeds {MAX_AUTHORITATIVE_CUSTOMERS}: authoritative codes are C0001 to C9999"
            )
        dataset = ReferenceDataset()
        if size <= 0:
            return dataset

        names: list[str] = []
        for i in range(size):
            if names and self._rng.random() < ambiguous_rate / 2:
                name = self._rng.choice(names)
            else:
                name = self._company_name(i)
            names.append(name)
            dataset.customers.append(self._customer(f"C{i + 1:04d}", name, i))

        provisional_no = 0
        for i, name in enumerate(names):
            if self._rng.random() >= duplicate_rate:
                continue
            twins = 2 if self._rng.random() < ambiguous_rate else 1
            for _ in range(twins):
                provisional_no += 1
                dataset.customers.append(self._customer(f"NC-{provisional_no}", self._name_variant(name), size + i))

        for _ in range(max(1, size // 10)):
            provisional_no += 1
            dataset.customers.append(
                self._customer(f"NC-{provisional_no}", self._company_name(size + provisional_no), provisional_no)
            )

        for customer in dataset.customers:
            identifier = customer[CustomerField.IDENTIFIER.value]
            for collection in DEFAULT_DEPENDENTS:
                for n in range(self._rng.randint(0, max_records_per_kind)):
                    dataset.records[collection.kind].append(
                        self._record(collection.kind, collection.foreign_key, identifier, n)
                    )

        self._rng.shuffle(dataset.customers)
        return dataset

    def _company_name(self, idx: int) -> str:
        trade = self._rng.choice(_TRADES)
        owner = self._rng.choice(_OWNERS)
        town = _TOWNS[idx % len(_TOWNS)]
        return f"{trade} {owner} {town} {idx}"

    def _name_variant(self, name: str) -> str:
        variant = self._rng.choice(["upper", "lower", "spaces", "padded"])
        if variant == "upper":
            return name.upper()
        if variant == "lower":
            return name.lower()
        if variant == "spaces":
            return "  ".join(name.split())
        return f" {name} "

    def _customer(self, identifier: str, name: str, idx: int) -> dict[str, Any]:
        phone_style = self._rng.choice(["national", "international", "none"])
        core = f"6{idx % 100000000:08d}"
        if phone_style == "national":
            phone = "0" + " ".join([core[0], core[1:3], core[3:5], core[5:7], core[7:9]])
        elif phone_style == "international":
            phone = f"+33 {core}"
        else:
            phone = ""
        return {
            CustomerField.IDENTIFIER.value: identifier,
            CustomerField.DISPLAY_NAME.value: name,
            CustomerField.EMAIL.value: "",
            CustomerField.PHONE.value: phone,
            CustomerField.ADDITIONAL_PHONES.value: [],
            CustomerField.FIRST_NAME.value: self._rng.choice(_FIRST_NAMES),
            CustomerField.LAST_NAME.value: name.split()[1] if len(name.split()) > 1 else "",
        }

    def _record(self, kind: RecordKind, foreign_key: str, identifier: str, n: int) -> dict[str, Any]:
        amount = round(self._rng.uniform(20, 2500), 2)
        if kind == RecordKind.INVOICE:
            return {foreign_key: identifier, "DocNum": f"INV-{identifier}-{n}", "DocTotal": amount}
        if kind == RecordKind.PAYMENT:
            return {foreign_key: identifier, "DocNum": f"PAY-{identifier}-{n}", "CashSum": amount}
        return {
            foreign_key: identifier,
            "itemCode": f"SKU{self._rng.randint(100, 999)}",
            "quantity": self._rng.randint(1, 40),
            "totalSales": amount,
        }
