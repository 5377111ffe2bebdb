"""
Error taxonomy for the vector retrieval layer.

- InitializationError: fatal, backend unreachable or collection uncreatable
- EmbeddingServiceError: per item, the embedding model call failed
- StoreError: per item, a backend write/read failed
- NotFoundError: query by id for an id with no stored vector
- BackendUnavailableError: in-memory primary index failed; triggers the fallback
"""

from typing import Optional


class VectorStoreError(Exception):
    """Base class for all retrieval layer errors."""
    pass


class InitializationError(VectorStoreError):
    """Raised when a backend cannot be reached or its collection cannot be created."""
    pass


class EmbeddingServiceError(VectorStoreError):
    """Raised when the embedding model call errors or times out."""
    pass


class StoreError(VectorStoreError):
    """Raised when a backend write (or non-query read) fails."""
    pass


class NotFoundError(VectorStoreError):
    """Raised when no vector is stored for the requested product id."""

    def __init__(self, product_id: str, message: Optional[str] = None):
        self.product_id = product_id
        super().__init__(message or f"Product not found: {product_id}")


class BackendUnavailableError(VectorStoreError):
    """Raised by the in-memory primary index; handled by the exact-store fallback."""
    pass
