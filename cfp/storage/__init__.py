"""Storage layer: talk + account stores (in-memory for dev/tests, Postgres for deployments).

This package is intentionally dependency-light at import time. Postgres drivers are
imported lazily inside functions so the API can run against the memory backend
without DB access.
"""

from __future__ import annotations
