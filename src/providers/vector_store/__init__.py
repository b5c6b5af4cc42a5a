"""Vector store provider implementations.

Two implementations of IVectorStoreProvider:
    - ChromaDBProvider    -- persistent cosine index on disk (CHROMADB_PERSIST_DIR)
    - InMemoryVectorStore -- process-local exact scan, for development and tests

main.py picks one from VECTOR_STORE_BACKEND.
"""

from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.providers.vector_store.memory_provider import InMemoryVectorStore

__all__ = ["ChromaDBProvider", "InMemoryVectorStore"]
