from __future__ import annotations

import logging
import re
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from customer_merge.models import Customer
from customer_merge.schema import CustomerField
from customer_merge.steps.normalize import normalize_name

logger = logging.getLogger(__name__)

AUTHORITATIVE_PATTERN = r"^C\d{4}$"


@dataclass(slots=True)
class CustomerIndex:
    """Customers grouped by exact normalized name, split by identifier origin."""

    authoritative_by_name: dict[str, list[Customer]] = field(default_factory=dict)
    provisional_by_name: dict[str, list[Customer]] = field(default_factory=dict)
    total_count: int = 0
    authoritative_count: int = 0
    provisional_count: int = 0
    excluded_count: int = 0


class CustomerIndexBuilder:
    """Single pass over the customer stream into two name-keyed hash maps."""

    def __init__(self, authoritative_pattern: str = AUTHORITATIVE_PATTERN) -> None:
        self._pattern = re.compile(authoritative_pattern)

    def is_authoritative(self, identifier: object) -> bool:
        """Match the stored identifier as-is; non-string identifiers are never authoritative."""
        return isinstance(identifier, str) and self._pattern.match(identifier) is not None

    def build(self, documents: Iterable[Mapping[str, Any]]) -> CustomerIndex:
        authoritative: dict[str, list[Customer]] = defaultdict(list)
        provisional: dict[str, list[Customer]] = defaultdict(list)
        index = CustomerIndex()

        for document in documents:
            raw_identifier = document.get(CustomerField.IDENTIFIER)
            customer = Customer.from_document(document)
            index.total_count += 1
            is_authoritative = self.is_authoritative(raw_identifier)
            if is_authoritative:
                index.authoritative_count += 1
            else:
                index.provisional_count += 1

            if not isinstance(raw_identifier, str) or not raw_identifier:
                logger.warning("Skipping customer %s: unusable identifier %r", customer.doc_id, raw_identifier)
                index.excluded_count += 1
                continue
            key = normalize_name(customer.display_name)
            if not key:
                index.excluded_count += 1
                continue
            (authoritative if is_authoritative else provisional)[key].append(customer)

        index.authoritative_by_name = dict(authoritative)
        index.provisional_by_name = dict(provisional)
        logger.info(
            "Indexed %d customers: %d authoritative names, %d provisional names, %d excluded",
            index.total_count,
            len(index.authoritative_by_name),
            len(index.provisional_by_name),
            index.excluded_count,
        )
        return index
