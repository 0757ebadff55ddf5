from __future__ import annotations

import logging
from collections.abc import Sequence

from customer_merge.models import Classification, Customer, DuplicateGroup, DuplicateKind, MergeCandidate
from customer_merge.steps.index import CustomerIndex

logger = logging.getLogger(__name__)

AUTHORITATIVE_DUPLICATE_REASON = "Multiple authoritative customers with same name"
PROVISIONAL_DUPLICATE_REASON = "Multiple provisional customers with same name"
ORPHAN_PROVISIONAL_DUPLICATE_REASON = "Multiple provisional customers with same name (no authoritative match)"


class DuplicateClassifier:
    """Exact-key classifier: accepts only unambiguous one-to-one pairs.

    Keys are visited in sorted order and group members are ordered by
    identifier, so two runs over the same snapshot produce equal output no
    matter how the store ordered its cursor.
    """

    def classify(self, index: CustomerIndex) -> Classification:
        candidates: list[MergeCandidate] = []
        authoritative_duplicates: list[DuplicateGroup] = []
        provisional_duplicates: list[DuplicateGroup] = []
        unmatched: list[Customer] = []

        authoritative_by_name = index.authoritative_by_name
        provisional_by_name = index.provisional_by_name

        for name in sorted(authoritative_by_name):
            authoritative = _ordered(authoritative_by_name[name])
            if len(authoritative) > 1:
                authoritative_duplicates.append(
                    DuplicateGroup(
                        name=name,
                        kind=DuplicateKind.AUTHORITATIVE,
                        customers=tuple(authoritative),
                        reason=AUTHORITATIVE_DUPLICATE_REASON,
                    )
                )
                continue

            provisional = _ordered(provisional_by_name.get(name, []))
            if not provisional:
                unmatched.append(authoritative[0])
            elif len(provisional) == 1:
                candidates.append(MergeCandidate(authoritative=authoritative[0], provisional=provisional[0]))
            else:
                provisional_duplicates.append(
                    DuplicateGroup(
                        name=name,
                        kind=DuplicateKind.PROVISIONAL,
                        customers=tuple(provisional),
                        reason=PROVISIONAL_DUPLICATE_REASON,
                    )
                )

        for name in sorted(provisional_by_name):
            if name in authoritative_by_name:
                continue
            provisional = _ordered(provisional_by_name[name])
            if len(provisional) > 1:
                provisional_duplicates.append(
                    DuplicateGroup(
                        name=name,
                        kind=DuplicateKind.PROVISIONAL,
                        customers=tuple(provisional),
                        reason=ORPHAN_PROVISIONAL_DUPLICATE_REASON,
                    )
                )
            else:
                unmatched.append(provisional[0])

        classification = Classification(
            valid_candidates=tuple(candidates),
            authoritative_duplicates=tuple(authoritative_duplicates),
            provisional_duplicates=tuple(provisional_duplicates),
            unmatched=tuple(unmatched),
        )
        logger.info(
            "Classified: %d merge candidates, %d authoritative duplicate groups, "
            "%d provisional duplicate groups, %d unmatched",
            len(classification.valid_candidates),
            len(classification.authoritative_duplicates),
            len(classification.provisional_duplicates),
            len(classification.unmatched),
        )
        return classification


def _ordered(customers: Sequence[Customer]) -> list[Customer]:
    return sorted(customers, key=lambda customer: (customer.identifier, str(customer.doc_id)))
