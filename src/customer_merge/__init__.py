"""Customer identity resolution and merge engine."""

from customer_merge.models import Classification, Customer, DuplicateGroup, MergeCandidate, MergeResults
from customer_merge.schema import CustomerField, DependentCollection, RecordKind

__all__ = [
    "Classification",
    "Customer",
    "CustomerField",
    "DependentCollection",
    "DuplicateGroup",
    "MergeCandidate",
    "MergeResults",
    "RecordKind",
]
