from customer_merge.stores.memory import InMemoryCustomerStore, InMemoryRecordStore
from customer_merge.stores.snapshot import Snapshot, load_snapshot, save_snapshot

__all__ = ["InMemoryCustomerStore", "InMemoryRecordStore", "Snapshot", "load_snapshot", "save_snapshot"]
