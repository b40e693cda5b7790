from lawdesk.cache.interface import ResponseCache, make_cache_key
from lawdesk.cache.in_memory import InMemoryResponseCache

__all__ = ["InMemoryResponseCache", "ResponseCache", "make_cache_key"]
