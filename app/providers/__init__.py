"""
Provider layer for swappable implementations.

Each provider family has an abstract interface that concrete
implementations must satisfy, plus a factory that picks the
implementation named in configuration. An unknown name yields a
MisconfiguredProvider that fails initialization instead of aborting
startup.

Directory Structure:
    providers/
    ├── base.py                # ProviderInterface, MisconfiguredProvider
    ├── configs.py             # Immutable per-family configuration
    ├── aws.py                 # Shared aioboto3 session helpers
    ├── storage/               # File storage (s3, gcs, local)
    ├── email/                 # Email delivery (sendgrid, ses, smtp) and templates
    ├── cache/                 # Key/value cache (redis, memory)
    └── database/              # Document store (mongodb, firestore, memory)
"""

# Lazy imports to avoid circular dependencies
# Providers are instantiated by their respective __init__.py files

__all__ = []
