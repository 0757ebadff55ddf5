from customer_merge.datasets.profiles import HUBSPOT_CONTACT_COLUMNS, ContactColumns
from customer_merge.datasets.reference import MAX_AUTHORITATIVE_CUSTOMERS, ReferenceDataset, ReferenceDatasetGenerator

__all__ = [
    "HUBSPOT_CONTACT_COLUMNS",
    "MAX_AUTHORITATIVE_CUSTOMERS",
    "ContactColumns",
    "ReferenceDataset",
    "ReferenceDatasetGenerator",
]
