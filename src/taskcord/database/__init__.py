"""
Database package for Taskcord.

Public API:
    - db_connection: the shared ConnectionManager
    - SchemaManager: table/index/trigger creation
    - KeyValueCache, kv_cache: TTL key-value store
    - CacheAside: read-through/write-through cache in front of a loader
"""
