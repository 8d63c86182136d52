"""LanceDB implementation of VectorIndex."""

import asyncio
import threading
from pathlib import Path
from typing import Any

import lancedb
import pyarrow as pa
from structlog.stdlib import BoundLogger

from huddle.config.models import VectorIndexConfig
from huddle.domain.entities.chunk import (
    ChunkMetadata,
    IndexStats,
    VectorMatch,
    VectorRecord,
)
from huddle.domain.errors import UpstreamError


def _escape_filter_value(value: str) -> str:
    """Escape single quotes in filter values to prevent injection."""
    return value.replace("'", "''")


def build_schema(dimension: int) -> pa.Schema:
    """Arrow schema of the vectors table: one row per chunk."""
    return pa.schema(
        [
            pa.field("id", pa.string(), nullable=False),
            pa.field("vector", pa.list_(pa.float32(), dimension)),
            pa.field("content", pa.string()),
            pa.field("message_id", pa.string()),
            pa.field("sender", pa.string()),
            pa.field("channel", pa.string()),
            pa.field("conversation_id", pa.string()),
            pa.field("created_at", pa.string()),
            pa.field("type", pa.string()),
            pa.field("chunk_index", pa.int32()),
            pa.field("total_chunks", pa.int32()),
            pa.field("original_message_id", pa.string()),
        ]
    )


def _to_row(record: VectorRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "vector": record.vector,
        "content": record.content,
        **record.metadata.model_dump(),
    }


def _to_match(row: dict[str, Any]) -> VectorMatch:
    # Cosine distance is in [0, 2]; map it onto a [0, 1] similarity
    score = min(1.0, max(0.0, 1.0 - float(row["_distance"])))
    return VectorMatch(
        id=row["id"],
        score=score,
        content=row["content"],
        metadata=ChunkMetadata(
            message_id=row["message_id"],
            sender=row["sender"],
            channel=row["channel"],
            conversation_id=row["conversation_id"],
            created_at=row["created_at"],
            type=row["type"],
            chunk_index=row["chunk_index"],
            total_chunks=row["total_chunks"],
            original_message_id=row["original_message_id"],
        ),
    )


class LanceVectorIndex:
    """Vector index stored in a local LanceDB table.

    LanceDB's Python API is synchronous, so each call runs in a worker
    thread. Writes are single merge/delete operations; nothing is held open
    across awaits.
    """

    def __init__(
        self, config: VectorIndexConfig, dimension: int, logger: BoundLogger
    ) -> None:
        self._config = config
        self._dimension = dimension
        self._logger = logger
        self._schema = build_schema(dimension)
        self._table: Any = None
        self._lock = threading.Lock()

    def _get_table(self) -> Any:
        if self._table is None:
            with self._lock:
                if self._table is None:  # Double-check after acquiring lock
                    if "://" not in self._config.uri:
                        Path(self._config.uri).mkdir(parents=True, exist_ok=True)
                    db = lancedb.connect(self._config.uri)
                    self._table = db.create_table(
                        self._config.table_name, schema=self._schema, exist_ok=True
                    )
        return self._table

    async def _call(self, operation: str, func: Any, *args: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except Exception as e:
            self._logger.error("Vector index call failed", operation=operation, error=str(e))
            raise UpstreamError(f"Vector index {operation} failed", detail=str(e)) from e

    async def upsert(self, records: list[VectorRecord]) -> int:
        """Write records in batches of at most ``upsert_batch_size``.

        Duplicate IDs within one call collapse to the last occurrence.
        """
        rows = list({record.id: _to_row(record) for record in records}.values())
        batch_size = self._config.upsert_batch_size
        for start in range(0, len(rows), batch_size):
            batch = rows[start : start + batch_size]
            await self._call("upsert", self._merge_rows, batch)
            self._logger.debug("Upserted vectors", count=len(batch))
        return len(rows)

    def _merge_rows(self, rows: list[dict[str, Any]]) -> None:
        data = pa.Table.from_pylist(rows, schema=self._schema)
        (
            self._get_table()
            .merge_insert("id")
            .when_matched_update_all()
            .when_not_matched_insert_all()
            .execute(data)
        )

    async def query(
        self,
        vector: list[float],
        top_k: int,
        min_score: float = 0.0,
        conversation_ids: list[str] | None = None,
    ) -> list[VectorMatch]:
        if conversation_ids is not None and not conversation_ids:
            return []
        rows = await self._call("query", self._search, vector, top_k, conversation_ids)
        matches = [_to_match(row) for row in rows]
        matches = [match for match in matches if match.score >= min_score]
        matches.sort(key=lambda match: match.score, reverse=True)
        return matches

    def _search(
        self, vector: list[float], top_k: int, conversation_ids: list[str] | None
    ) -> list[dict[str, Any]]:
        table = self._get_table()
        if table.count_rows() == 0:
            return []

        search = (
            table.search(vector, vector_column_name="vector")
            .distance_type("cosine")
            .limit(top_k)
        )
        if conversation_ids is not None:
            keys = ", ".join(
                f"'{_escape_filter_value(key)}'" for key in sorted(set(conversation_ids))
            )
            search = search.where(f"conversation_id IN ({keys})", prefilter=True)
        return search.to_list()

    async def delete_by_message_id(self, message_id: str) -> int:
        return await self._call("delete", self._delete_message, message_id)

    def _delete_message(self, message_id: str) -> int:
        table = self._get_table()
        predicate = f"message_id = '{_escape_filter_value(message_id)}'"
        count = table.count_rows(predicate)
        if count:
            table.delete(predicate)
        return count

    async def stats(self) -> IndexStats:
        total = await self._call("stats", lambda: self._get_table().count_rows())
        return IndexStats(
            total_vector_count=total,
            dimension=self._dimension,
            namespaces={self._config.table_name: {"vectorCount": total}},
        )
