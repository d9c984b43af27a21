"""
Base interface for memory entry storage.

Every mutation is a single-record unit: implementations must apply each call
atomically (one read-modify-write per record) so the consolidation batch and
the background processor never lose each other's updates.
"""

from abc import ABC, abstractmethod

from wellmind.models.facts import AtomicFact
from wellmind.models.memory import MemoryEntry
from wellmind.models.relationships import MemoryRelationship


class MemoryStore(ABC):
    """Abstract base class for memory storage implementations."""

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the store (create tables/schema)."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""
        pass

    # ═══════════════════════════════════════════════════════════
    # MEMORY ENTRIES
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def add_memory(self, memory: MemoryEntry) -> None:
        """
        Insert a memory entry.

        Args:
            memory: Entry to store
        """
        pass

    @abstractmethod
    async def get_memory(self, memory_id: str) -> MemoryEntry | None:
        """
        Retrieve a memory entry by ID (active or not).

        Args:
            memory_id: Memory identifier

        Returns:
            MemoryEntry or None if not found
        """
        pass

    @abstractmethod
    async def update_memory(self, memory: MemoryEntry) -> None:
        """
        Overwrite an existing memory entry.

        Raises:
            NotFoundError: If the memory doesn't exist
        """
        pass

    @abstractmethod
    async def list_memories(
        self,
        user_id: int | None = None,
        active_only: bool = True,
        limit: int | None = None,
    ) -> list[MemoryEntry]:
        """
        List memories newest-first.

        Args:
            user_id: Restrict to one owner (None for every user)
            active_only: Skip deactivated entries
            limit: Maximum results

        Returns:
            Memories ordered by created_at descending
        """
        pass

    @abstractmethod
    async def find_by_semantic_hash(self, user_id: int, semantic_hash: str) -> MemoryEntry | None:
        """
        Find an active memory of a user with the given fingerprint.

        Returns:
            The most important match, or None
        """
        pass

    @abstractmethod
    async def record_access(self, memory_id: str) -> None:
        """Increment a memory's access counter."""
        pass

    @abstractmethod
    async def merge_into(self, primary_id: str, duplicate: MemoryEntry) -> MemoryEntry:
        """
        Fold a duplicate's labels, keywords, importance and access count into the primary.

        Reads the primary's current row so successive merges accumulate.

        Args:
            primary_id: Memory that survives
            duplicate: Memory being folded in

        Returns:
            The updated primary

        Raises:
            NotFoundError: If the primary doesn't exist
        """
        pass

    @abstractmethod
    async def merge_and_deactivate(
        self, primary_id: str, duplicate_id: str
    ) -> MemoryEntry | None:
        """
        Merge a duplicate into the primary and deactivate it as one atomic write.

        Both rows are re-read under the write lock. Either both writes land or
        neither does.

        Args:
            primary_id: Memory that survives
            duplicate_id: Memory being folded in and deactivated

        Returns:
            The updated primary, or None if the duplicate was already inactive

        Raises:
            NotFoundError: If either memory doesn't exist
        """
        pass

    @abstractmethod
    async def deactivate_memory(self, memory_id: str) -> None:
        """
        Logically delete a memory and soft-invalidate its atomic facts.

        Raises:
            NotFoundError: If the memory doesn't exist
        """
        pass

    @abstractmethod
    async def count_memories(self, user_id: int | None = None, active_only: bool = True) -> int:
        """Count memories."""
        pass

    # ═══════════════════════════════════════════════════════════
    # ATOMIC FACTS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def add_atomic_facts(self, facts: list[AtomicFact]) -> int:
        """
        Store atomic facts.

        Returns:
            Number of facts stored
        """
        pass

    @abstractmethod
    async def get_atomic_facts(self, memory_id: str, active_only: bool = True) -> list[AtomicFact]:
        """Facts belonging to one memory, in extraction order."""
        pass

    # ═══════════════════════════════════════════════════════════
    # RELATIONSHIPS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def add_relationship(self, relationship: MemoryRelationship) -> bool:
        """
        Store a relationship unless one with the same (source, target, type) exists.

        Returns:
            True if created, False if it already existed
        """
        pass

    @abstractmethod
    async def get_relationships(
        self, memory_id: str, direction: str = "outgoing"
    ) -> list[MemoryRelationship]:
        """
        Relationships touching a memory.

        Args:
            memory_id: Memory identifier
            direction: "outgoing", "incoming" or "both"

        Returns:
            Relationships ordered by strength (strongest first)
        """
        pass
