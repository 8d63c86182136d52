"""Vector index infrastructure."""

from huddle.infrastructure.vector_index.lance_index import LanceVectorIndex

__all__ = ["LanceVectorIndex"]
