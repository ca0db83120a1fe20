"""Rotation schedule computation with per-user exceptions and async caching.

Modules:
- config: load and validate configuration (YAML)
- errors: error taxonomy
- domain: value types, built-in cycle, SQLAlchemy models and repositories
- engine: pattern resolver, schedule generator, exception merge, schedule cache
- services: calendar arithmetic, prefetch planning, validation
- io: CSV import/export helpers
- cli: command-line interface entrypoints
"""

__version__ = "0.1.0"

__all__ = [
    "config",
    "errors",
    "domain",
    "engine",
    "services",
    "io",
    "cli",
]
