"""
Duplicate consolidation service.

Batch pass over active memories that groups duplicates, keeps one primary
per group, folds the others' labels, keywords, importance and access count
into it, and deactivates them. Nothing is physically deleted.
"""

import asyncio
import time

from wellmind.config import DeduplicationConfig
from wellmind.core.memory_store.base import MemoryStore
from wellmind.core.similarity import classify_duplicate
from wellmind.models.consolidation import (
    ConsolidationReport,
    DuplicateGroup,
    DuplicateGroupSummary,
    DuplicateMatch,
    GroupError,
)
from wellmind.models.memory import MemoryEntry
from wellmind.services.performance_monitor import PerformanceMonitor
from wellmind.utils.logger import get_logger

logger = get_logger(__name__)


def select_primary(members: list[MemoryEntry]) -> MemoryEntry:
    """
    Pick the memory that survives a duplicate group.

    Highest importance, then highest access count, then most recent creation.
    Remaining ties go to the larger ID so the choice is stable.
    """
    return max(
        members,
        key=lambda m: (m.importance_score, m.access_count, m.created_at, m.id),
    )


class DuplicateConsolidationService:
    """
    Finds and merges duplicate memories.

    Groups never span users: a global run partitions memories by owner first.
    Running twice with no new data deactivates nothing the second time,
    because merged duplicates are inactive and excluded from the scan.
    """

    def __init__(
        self,
        store: MemoryStore,
        config: DeduplicationConfig | None = None,
        monitor: PerformanceMonitor | None = None,
    ):
        """
        Initialize consolidation service.

        Args:
            store: Memory store to scan and update
            config: Similarity threshold, token length and schedule
            monitor: Receives deduplication timing samples
        """
        self.store = store
        self.config = config or DeduplicationConfig()
        self.monitor = monitor or PerformanceMonitor()
        self._worker_task: asyncio.Task | None = None

    # ═══════════════════════════════════════════════════════════
    # DETECTION
    # ═══════════════════════════════════════════════════════════

    def identify_duplicates(self, memories: list[MemoryEntry]) -> list[DuplicateGroup]:
        """
        Group duplicates in a single pass.

        Memories are scanned newest-first. Each unprocessed memory seeds a
        group and claims every later unprocessed memory matching it by exact
        content, semantic hash, or fuzzy similarity (first signal wins).

        Args:
            memories: Memories to scan (inactive ones are ignored)

        Returns:
            Groups with at least two members, primary already selected
        """
        by_user: dict[int, list[MemoryEntry]] = {}
        for memory in memories:
            if memory.is_active:
                by_user.setdefault(memory.user_id, []).append(memory)

        groups: list[DuplicateGroup] = []
        for user_id in sorted(by_user):
            ordered = sorted(by_user[user_id], key=lambda m: (m.created_at, m.id), reverse=True)
            groups.extend(self._group(ordered))
        return groups

    def _group(self, ordered: list[MemoryEntry]) -> list[DuplicateGroup]:
        processed: set[str] = set()
        groups = []

        for i, seed in enumerate(ordered):
            if seed.id in processed:
                continue
            processed.add(seed.id)

            members = [seed]
            matches: list[DuplicateMatch] = []
            for candidate in ordered[i + 1 :]:
                if candidate.id in processed:
                    continue
                classified = classify_duplicate(
                    seed,
                    candidate,
                    threshold=self.config.similarity_threshold,
                    min_token_length=self.config.min_token_length,
                )
                if classified is None:
                    continue

                reason, similarity = classified
                processed.add(candidate.id)
                members.append(candidate)
                matches.append(
                    DuplicateMatch(memory_id=candidate.id, reason=reason, similarity=similarity)
                )

            if not matches:
                continue

            primary = select_primary(members)
            groups.append(
                DuplicateGroup(
                    primary=primary,
                    duplicates=[m for m in members if m.id != primary.id],
                    reason=matches[0].reason,
                    similarity=matches[0].similarity,
                    matches=matches,
                )
            )

        return groups

    # ═══════════════════════════════════════════════════════════
    # CONSOLIDATION
    # ═══════════════════════════════════════════════════════════

    async def consolidate(
        self, dry_run: bool = False, user_id: int | None = None
    ) -> ConsolidationReport:
        """
        Run one consolidation pass.

        Each duplicate's merge + deactivate is a self-contained unit: a failure
        is logged and recorded in ``errors`` and the run moves on.

        Args:
            dry_run: Detect and report only, write nothing
            user_id: Restrict the run to one user (None for everyone)

        Returns:
            ConsolidationReport (in dry-run mode the counts are what would change)
        """
        start = time.perf_counter()
        logger.info(
            "Starting duplicate consolidation"
            f"{' (dry run)' if dry_run else ''}"
            f"{f' for user {user_id}' if user_id is not None else ''}"
        )

        memories = await self.store.list_memories(user_id=user_id, active_only=True)
        groups = self.identify_duplicates(memories)

        report = ConsolidationReport(
            total_memories=len(memories), duplicate_groups=len(groups), dry_run=dry_run
        )

        for group in groups:
            if dry_run:
                report.memories_deactivated += len(group.duplicates)
                report.memories_updated += 1
                applied = False
            else:
                applied = await self._apply_group(group, report)

            report.groups.append(
                DuplicateGroupSummary(
                    primary_id=group.primary.id,
                    duplicate_ids=[d.id for d in group.duplicates],
                    reason=group.reason,
                    similarity=group.similarity,
                    applied=applied,
                )
            )
            logger.debug(
                f"Group {group.primary.id} <- {[d.id for d in group.duplicates]} "
                f"({group.reason.value}, similarity {group.similarity:.2f})"
            )

        report.processing_time_ms = (time.perf_counter() - start) * 1000
        self.monitor.track_deduplication(report.processing_time_ms, success=not report.errors)

        logger.info(
            f"Consolidation complete: {report.total_memories} memories, "
            f"{report.duplicate_groups} groups, {report.memories_deactivated} deactivated, "
            f"{report.memories_updated} updated, {len(report.errors)} errors "
            f"in {report.processing_time_ms:.2f}ms"
        )
        return report

    async def _apply_group(self, group: DuplicateGroup, report: ConsolidationReport) -> bool:
        merged = 0
        for duplicate in group.duplicates:
            try:
                merged_primary = await self.store.merge_and_deactivate(
                    group.primary.id, duplicate.id
                )
            except Exception as e:
                logger.error(f"Failed to merge {duplicate.id} into {group.primary.id}: {e}")
                report.errors.append(
                    GroupError(
                        primary_id=group.primary.id, duplicate_id=duplicate.id, error=str(e)
                    )
                )
                continue
            if merged_primary is None:
                logger.debug(f"Skipping {duplicate.id}: already inactive")
                continue
            merged += 1

        report.memories_deactivated += merged
        if merged:
            report.memories_updated += 1
        return merged == len(group.duplicates)

    # ═══════════════════════════════════════════════════════════
    # SCHEDULING
    # ═══════════════════════════════════════════════════════════

    def start_scheduled(self, interval_hours: float | None = None):
        """
        Start periodic consolidation.

        Args:
            interval_hours: Hours between runs (defaults to config.schedule_interval_hours)
        """
        interval = interval_hours or self.config.schedule_interval_hours
        if self._worker_task is None or self._worker_task.done():
            self._worker_task = asyncio.create_task(self._consolidation_worker(interval))

    async def stop_scheduled(self):
        """Stop periodic consolidation and wait for the worker to exit."""
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()
            await asyncio.gather(self._worker_task, return_exceptions=True)
        self._worker_task = None

    @property
    def is_scheduled(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    async def _consolidation_worker(self, interval_hours: float):
        while True:
            try:
                await self.consolidate()
            except asyncio.CancelledError:
                logger.info("Scheduled consolidation stopped")
                break
            except Exception as e:
                logger.error(f"Error in scheduled consolidation: {e}")

            try:
                await asyncio.sleep(interval_hours * 3600)
            except asyncio.CancelledError:
                logger.info("Scheduled consolidation stopped")
                break
