"""
Service layer abstraction.

Each service encapsulates business logic for a domain.  Storage and
the event directory sit behind small adapter classes, so the same
services run against SQLite in production and in memory in tests.
"""
