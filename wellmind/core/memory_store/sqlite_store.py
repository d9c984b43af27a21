"""
SQLite memory store implementation.

Clean, durable local storage using aiosqlite.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path

import aiosqlite

from wellmind.core.memory_store.base import MemoryStore
from wellmind.models.facts import AtomicFact, FactType
from wellmind.models.memory import MemoryCategory, MemoryEntry
from wellmind.models.relationships import MemoryRelationship, RelationshipType
from wellmind.utils.exceptions import NotFoundError, StoreError, ValidationError
from wellmind.utils.logger import get_logger

logger = get_logger(__name__)

_MEMORY_COLUMNS = (
    "id, user_id, content, category, conversation_id, importance_score, access_count, "
    "update_count, semantic_hash, labels, keywords, is_active, created_at, updated_at"
)


class SQLiteMemoryStore(MemoryStore):
    """
    SQLite-based store for memory entries, atomic facts and relationships.

    Features:
    - Fast local storage with WAL journaling
    - JSON columns for labels and keywords
    - UNIQUE (source, target, type) constraint for idempotent relationships
    - Writes serialized through one asyncio lock (read-modify-write is atomic)
    """

    def __init__(self, db_path: str = "data/wellmind.db"):
        """
        Initialize SQLite memory store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self.connection: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def connect(self) -> None:
        """Establish connection to SQLite."""
        if self.connection is None:
            self.connection = await aiosqlite.connect(self.db_path)
            await self.connection.execute("PRAGMA foreign_keys = ON")
            await self.connection.execute("PRAGMA journal_mode = WAL")
            await self.connection.commit()

    async def initialize(self) -> None:
        """Initialize database schema."""
        async with self._errors("initialize"):
            await self.connect()

            await self.connection.execute(
                """
                CREATE TABLE IF NOT EXISTS memory_entries (
                    id TEXT PRIMARY KEY,
                    user_id INTEGER NOT NULL,
                    content TEXT NOT NULL,
                    category TEXT NOT NULL,
                    conversation_id TEXT,
                    importance_score REAL DEFAULT 0.5,
                    access_count INTEGER DEFAULT 0,
                    update_count INTEGER DEFAULT 0,
                    semantic_hash TEXT,
                    labels TEXT DEFAULT '[]',
                    keywords TEXT DEFAULT '[]',
                    is_active INTEGER DEFAULT 1,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """
            )

            await self.connection.execute(
                """
                CREATE TABLE IF NOT EXISTS atomic_facts (
                    id TEXT PRIMARY KEY,
                    memory_entry_id TEXT NOT NULL,
                    fact_type TEXT NOT NULL,
                    content TEXT NOT NULL,
                    confidence REAL NOT NULL,
                    is_active INTEGER DEFAULT 1,
                    extracted_at TEXT NOT NULL,
                    FOREIGN KEY (memory_entry_id) REFERENCES memory_entries(id) ON DELETE CASCADE
                )
            """
            )

            await self.connection.execute(
                """
                CREATE TABLE IF NOT EXISTS memory_relationships (
                    id TEXT PRIMARY KEY,
                    source_memory_id TEXT NOT NULL,
                    target_memory_id TEXT NOT NULL,
                    relationship_type TEXT NOT NULL,
                    strength REAL NOT NULL,
                    confidence REAL NOT NULL,
                    context TEXT DEFAULT '',
                    created_at TEXT NOT NULL,
                    UNIQUE (source_memory_id, target_memory_id, relationship_type),
                    FOREIGN KEY (source_memory_id) REFERENCES memory_entries(id) ON DELETE CASCADE,
                    FOREIGN KEY (target_memory_id) REFERENCES memory_entries(id) ON DELETE CASCADE
                )
            """
            )

            await self.connection.execute(
                "CREATE INDEX IF NOT EXISTS idx_memories_user ON memory_entries(user_id, is_active)"
            )
            await self.connection.execute(
                "CREATE INDEX IF NOT EXISTS idx_memories_hash ON memory_entries(semantic_hash)"
            )
            await self.connection.execute(
                "CREATE INDEX IF NOT EXISTS idx_memories_created ON memory_entries(created_at)"
            )
            await self.connection.execute(
                "CREATE INDEX IF NOT EXISTS idx_facts_memory ON atomic_facts(memory_entry_id)"
            )
            await self.connection.execute(
                "CREATE INDEX IF NOT EXISTS idx_rel_source ON memory_relationships(source_memory_id)"
            )
            await self.connection.execute(
                "CREATE INDEX IF NOT EXISTS idx_rel_target ON memory_relationships(target_memory_id)"
            )

            await self.connection.commit()

        logger.info(f"SQLite memory store ready at {self.db_path}")

    # ═══════════════════════════════════════════════════════════
    # MEMORY ENTRIES
    # ═══════════════════════════════════════════════════════════

    async def add_memory(self, memory: MemoryEntry) -> None:
        """Insert a memory entry."""
        async with self._errors("add_memory"), self._write_lock:
            await self.connect()
            try:
                await self.connection.execute(
                    f"INSERT INTO memory_entries ({_MEMORY_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    self._memory_params(memory),
                )
            except aiosqlite.IntegrityError as e:
                raise ValidationError(f"Memory already exists: {memory.id}") from e
            await self.connection.commit()

    async def get_memory(self, memory_id: str) -> MemoryEntry | None:
        """Retrieve a memory entry by ID."""
        async with self._errors("get_memory"):
            await self.connect()
            cursor = await self.connection.execute(
                f"SELECT {_MEMORY_COLUMNS} FROM memory_entries WHERE id = ?", (memory_id,)
            )
            row = await cursor.fetchone()

        if not row:
            return None
        return self._row_to_memory(row)

    async def update_memory(self, memory: MemoryEntry) -> None:
        """Overwrite an existing memory entry."""
        async with self._errors("update_memory"), self._write_lock:
            await self.connect()
            await self._write_memory(memory)
            await self.connection.commit()

    async def list_memories(
        self,
        user_id: int | None = None,
        active_only: bool = True,
        limit: int | None = None,
    ) -> list[MemoryEntry]:
        """List memories newest-first."""
        query = f"SELECT {_MEMORY_COLUMNS} FROM memory_entries WHERE 1=1"
        params: list = []

        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        if active_only:
            query += " AND is_active = 1"

        query += " ORDER BY created_at DESC, id DESC"

        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        async with self._errors("list_memories"):
            await self.connect()
            cursor = await self.connection.execute(query, params)
            rows = await cursor.fetchall()

        return [self._row_to_memory(row) for row in rows]

    async def find_by_semantic_hash(self, user_id: int, semantic_hash: str) -> MemoryEntry | None:
        """Find the most important active memory of a user with the given fingerprint."""
        async with self._errors("find_by_semantic_hash"):
            await self.connect()
            cursor = await self.connection.execute(
                f"""
                SELECT {_MEMORY_COLUMNS} FROM memory_entries
                WHERE user_id = ? AND semantic_hash = ? AND is_active = 1
                ORDER BY importance_score DESC, created_at DESC
                LIMIT 1
                """,
                (user_id, semantic_hash),
            )
            row = await cursor.fetchone()

        return self._row_to_memory(row) if row else None

    async def record_access(self, memory_id: str) -> None:
        """Increment a memory's access counter."""
        async with self._errors("record_access"), self._write_lock:
            await self.connect()
            cursor = await self.connection.execute(
                "UPDATE memory_entries SET access_count = access_count + 1 WHERE id = ?",
                (memory_id,),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Memory not found: {memory_id}")
            await self.connection.commit()

    async def merge_into(self, primary_id: str, duplicate: MemoryEntry) -> MemoryEntry:
        """Fold a duplicate into the primary's current row."""
        async with self._errors("merge_into"), self._write_lock:
            await self.connect()
            primary = await self._require_memory(primary_id)
            primary.merge_from(duplicate)
            await self._write_memory(primary)
            await self.connection.commit()

        return primary

    async def merge_and_deactivate(
        self, primary_id: str, duplicate_id: str
    ) -> MemoryEntry | None:
        """Fold a duplicate into the primary and deactivate it in one transaction."""
        async with self._errors("merge_and_deactivate"), self._write_lock:
            await self.connect()
            primary = await self._require_memory(primary_id)
            duplicate = await self._require_memory(duplicate_id)
            if not duplicate.is_active:
                return None

            primary.merge_from(duplicate)
            try:
                await self._write_memory(primary)
                await self._deactivate_row(duplicate_id, primary.updated_at)
            except Exception:
                await self.connection.rollback()
                raise
            await self.connection.commit()

        return primary

    async def deactivate_memory(self, memory_id: str) -> None:
        """Logically delete a memory and soft-invalidate its facts."""
        async with self._errors("deactivate_memory"), self._write_lock:
            await self.connect()
            try:
                await self._deactivate_row(memory_id, datetime.now())
            except Exception:
                await self.connection.rollback()
                raise
            await self.connection.commit()

    async def count_memories(self, user_id: int | None = None, active_only: bool = True) -> int:
        """Count memories."""
        query = "SELECT COUNT(*) FROM memory_entries WHERE 1=1"
        params: list = []
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        if active_only:
            query += " AND is_active = 1"

        async with self._errors("count_memories"):
            await self.connect()
            cursor = await self.connection.execute(query, params)
            row = await cursor.fetchone()

        return row[0] if row else 0

    # ═══════════════════════════════════════════════════════════
    # ATOMIC FACTS
    # ═══════════════════════════════════════════════════════════

    async def add_atomic_facts(self, facts: list[AtomicFact]) -> int:
        """Store atomic facts."""
        if not facts:
            return 0

        async with self._errors("add_atomic_facts"), self._write_lock:
            await self.connect()
            await self.connection.executemany(
                """
                INSERT INTO atomic_facts (
                    id, memory_entry_id, fact_type, content, confidence, is_active, extracted_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        fact.id,
                        fact.memory_entry_id,
                        fact.fact_type.value,
                        fact.content,
                        fact.confidence,
                        1 if fact.is_active else 0,
                        fact.extracted_at.isoformat(),
                    )
                    for fact in facts
                ],
            )
            await self.connection.commit()

        return len(facts)

    async def get_atomic_facts(self, memory_id: str, active_only: bool = True) -> list[AtomicFact]:
        """Facts belonging to one memory, in extraction order."""
        query = (
            "SELECT id, memory_entry_id, fact_type, content, confidence, is_active, extracted_at "
            "FROM atomic_facts WHERE memory_entry_id = ?"
        )
        if active_only:
            query += " AND is_active = 1"
        query += " ORDER BY rowid"

        async with self._errors("get_atomic_facts"):
            await self.connect()
            cursor = await self.connection.execute(query, (memory_id,))
            rows = await cursor.fetchall()

        return [
            AtomicFact(
                id=row[0],
                memory_entry_id=row[1],
                fact_type=FactType(row[2]),
                content=row[3],
                confidence=row[4],
                is_active=bool(row[5]),
                extracted_at=datetime.fromisoformat(row[6]),
            )
            for row in rows
        ]

    # ═══════════════════════════════════════════════════════════
    # RELATIONSHIPS
    # ═══════════════════════════════════════════════════════════

    async def add_relationship(self, relationship: MemoryRelationship) -> bool:
        """Store a relationship unless the (source, target, type) triple exists."""
        async with self._errors("add_relationship"), self._write_lock:
            await self.connect()
            cursor = await self.connection.execute(
                """
                INSERT OR IGNORE INTO memory_relationships (
                    id, source_memory_id, target_memory_id, relationship_type,
                    strength, confidence, context, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    relationship.id,
                    relationship.source_memory_id,
                    relationship.target_memory_id,
                    relationship.relationship_type.value,
                    relationship.strength,
                    relationship.confidence,
                    relationship.context,
                    relationship.created_at.isoformat(),
                ),
            )
            await self.connection.commit()

        return cursor.rowcount > 0

    async def get_relationships(
        self, memory_id: str, direction: str = "outgoing"
    ) -> list[MemoryRelationship]:
        """Relationships touching a memory, strongest first."""
        if direction == "outgoing":
            where, params = "source_memory_id = ?", (memory_id,)
        elif direction == "incoming":
            where, params = "target_memory_id = ?", (memory_id,)
        elif direction == "both":
            where, params = "source_memory_id = ? OR target_memory_id = ?", (memory_id, memory_id)
        else:
            raise ValidationError(f"Invalid direction: {direction}")

        async with self._errors("get_relationships"):
            await self.connect()
            cursor = await self.connection.execute(
                f"""
                SELECT id, source_memory_id, target_memory_id, relationship_type,
                       strength, confidence, context, created_at
                FROM memory_relationships
                WHERE {where}
                ORDER BY strength DESC, created_at ASC
                """,
                params,
            )
            rows = await cursor.fetchall()

        return [
            MemoryRelationship(
                id=row[0],
                source_memory_id=row[1],
                target_memory_id=row[2],
                relationship_type=RelationshipType(row[3]),
                strength=row[4],
                confidence=row[5],
                context=row[6] or "",
                created_at=datetime.fromisoformat(row[7]),
            )
            for row in rows
        ]

    async def close(self) -> None:
        """Close the connection."""
        if self.connection is not None:
            await self.connection.close()
            self.connection = None

    # ═══════════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════════

    @asynccontextmanager
    async def _errors(self, operation: str):
        """Wrap driver errors in StoreError."""
        try:
            yield
        except aiosqlite.Error as e:
            logger.error(f"SQLite {operation} failed: {e}")
            raise StoreError(f"SQLite {operation} failed: {e}", {"operation": operation}) from e

    async def _require_memory(self, memory_id: str) -> MemoryEntry:
        cursor = await self.connection.execute(
            f"SELECT {_MEMORY_COLUMNS} FROM memory_entries WHERE id = ?", (memory_id,)
        )
        row = await cursor.fetchone()
        if not row:
            raise NotFoundError(f"Memory not found: {memory_id}")
        return self._row_to_memory(row)

    async def _deactivate_row(self, memory_id: str, now: datetime) -> None:
        cursor = await self.connection.execute(
            "UPDATE memory_entries SET is_active = 0, updated_at = ? WHERE id = ?",
            (now.isoformat(), memory_id),
        )
        if cursor.rowcount == 0:
            raise NotFoundError(f"Memory not found: {memory_id}")
        await self.connection.execute(
            "UPDATE atomic_facts SET is_active = 0 WHERE memory_entry_id = ?", (memory_id,)
        )

    async def _write_memory(self, memory: MemoryEntry) -> None:
        params = self._memory_params(memory)
        cursor = await self.connection.execute(
            """
            UPDATE memory_entries SET
                user_id = ?, content = ?, category = ?, conversation_id = ?,
                importance_score = ?, access_count = ?, update_count = ?, semantic_hash = ?,
                labels = ?, keywords = ?, is_active = ?, created_at = ?, updated_at = ?
            WHERE id = ?
            """,
            (*params[1:], params[0]),
        )
        if cursor.rowcount == 0:
            raise NotFoundError(f"Memory not found: {memory.id}")

    @staticmethod
    def _memory_params(memory: MemoryEntry) -> tuple:
        return (
            memory.id,
            memory.user_id,
            memory.content,
            memory.category.value,
            memory.conversation_id,
            memory.importance_score,
            memory.access_count,
            memory.update_count,
            memory.semantic_hash,
            json.dumps(memory.labels),
            json.dumps(memory.keywords),
            1 if memory.is_active else 0,
            memory.created_at.isoformat(),
            memory.updated_at.isoformat(),
        )

    @staticmethod
    def _row_to_memory(row: tuple) -> MemoryEntry:
        """Convert database row to MemoryEntry."""
        return MemoryEntry(
            id=row[0],
            user_id=row[1],
            content=row[2],
            category=MemoryCategory(row[3]),
            conversation_id=row[4],
            importance_score=row[5],
            access_count=row[6],
            update_count=row[7],
            semantic_hash=row[8],
            labels=json.loads(row[9]) if row[9] else [],
            keywords=json.loads(row[10]) if row[10] else [],
            is_active=bool(row[11]),
            created_at=datetime.fromisoformat(row[12]),
            updated_at=datetime.fromisoformat(row[13]),
        )
