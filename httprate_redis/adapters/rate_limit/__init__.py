"""Rate limiting adapters.

This package provides a small abstraction layer so the HTTP layer can count
requests in Redis (shared by every worker) or in process memory without
changing the API layer.

Submodules are imported directly; ``keys`` has no dependencies inside the
project so settings can reuse its defaults.
"""
