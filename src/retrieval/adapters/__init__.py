"""
Vector store adapters.

- RemoteIndexAdapter: Pinecone serverless index
- LocalPersistentAdapter: chroma collection on local disk
- InMemoryAdapter: ephemeral chroma primary with an exact-store fallback
"""

from retrieval.adapters.base import VectorStoreAdapter
from retrieval.adapters.exact_store import ExactVectorStore
from retrieval.adapters.local import LocalPersistentAdapter
from retrieval.adapters.memory import InMemoryAdapter
from retrieval.adapters.remote import RemoteIndexAdapter

__all__ = [
    "VectorStoreAdapter",
    "ExactVectorStore",
    "LocalPersistentAdapter",
    "InMemoryAdapter",
    "RemoteIndexAdapter",
]
