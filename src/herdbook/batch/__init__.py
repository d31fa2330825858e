"""Batch operations module -- apply one operation to many animals of a tenant.

Provides the typed operation payloads and request envelope (schemas),
BatchRepository for tenant-scoped lookups and per-animal writes, and
BatchExecutor, which pre-validates ids, records partial failures inline and
creates the optional follow-up task.
"""
