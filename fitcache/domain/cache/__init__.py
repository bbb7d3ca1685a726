"""
Cache Domain Module

Entities, value objects, repository interfaces and domain services for
the freshness cache.
"""
