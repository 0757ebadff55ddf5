from customer_merge.steps.cascade import MergeCascadeExecutor, ProgressLogger, rewrite_dependents
from customer_merge.steps.classify import DuplicateClassifier
from customer_merge.steps.gap_fill import GapFillingMatcher, contacts_from_rows
from customer_merge.steps.index import CustomerIndex, CustomerIndexBuilder
from customer_merge.steps.normalize import normalize_email, normalize_name, normalize_phone
from customer_merge.steps.report import AuditReporter, DuplicateInventoryReporter

__all__ = [
    "AuditReporter",
    "CustomerIndex",
    "CustomerIndexBuilder",
    "DuplicateClassifier",
    "DuplicateInventoryReporter",
    "GapFillingMatcher",
    "MergeCascadeExecutor",
    "ProgressLogger",
    "contacts_from_rows",
    "normalize_email",
    "normalize_name",
    "normalize_phone",
    "rewrite_dependents",
]
