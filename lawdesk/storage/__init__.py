from lawdesk.storage.interface import KeyValueStore
from lawdesk.storage.in_memory import InMemoryKeyValueStore
from lawdesk.storage.json_file import JSONFileKeyValueStore

__all__ = ["InMemoryKeyValueStore", "JSONFileKeyValueStore", "KeyValueStore"]
