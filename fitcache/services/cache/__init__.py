"""
Cache services: the consumer-facing manager and per-screen bindings.
"""
