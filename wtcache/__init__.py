"""
wtcache: Write-Through Key-Value Cache

A bounded LRU cache shared by a fixed pool of worker threads, fronting a
persistent SQL key-value table. Each worker owns exactly one backing-store
connection, health-checked and reconnected on failure.
"""

__version__ = "1.0.0"
