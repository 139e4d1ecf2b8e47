"""Storage for rendered protocol documents.

Provides:
- DocumentStore: Protocol implemented by storage backends
- LocalDocumentStore: Filesystem implementation
- with_retry: tenacity retry policy for storage calls
"""

from governance.storage.base import DocumentStore, StoredDocument
from governance.storage.local import LocalDocumentStore
from governance.storage.retry import with_retry

__all__ = [
    "DocumentStore",
    "StoredDocument",
    "LocalDocumentStore",
    "with_retry",
]
