"""
ID generation utilities for the memory core.

Provides consistent ID generation for all entity types:
- Memories: mem_xxx
- Atomic facts: fact_xxx
- Relationships: rel_xxx
- Background tasks: task_xxx
- Semantic clusters: cluster_xxx (deterministic)
"""

import hashlib
from uuid import uuid4


def generate_memory_id() -> str:
    """
    Generate unique Memory ID.

    Returns:
        ID in format "mem_xxx" where xxx is 12 hex characters
    """
    return f"mem_{uuid4().hex[:12]}"


def generate_fact_id() -> str:
    """
    Generate unique AtomicFact ID.

    Returns:
        ID in format "fact_xxx" where xxx is 12 hex characters
    """
    return f"fact_{uuid4().hex[:12]}"


def generate_relationship_id() -> str:
    """
    Generate unique MemoryRelationship ID.

    Returns:
        ID in format "rel_xxx" where xxx is 12 hex characters
    """
    return f"rel_{uuid4().hex[:12]}"


def generate_task_id() -> str:
    """
    Generate unique background Task ID.

    Returns:
        ID in format "task_xxx" where xxx is 12 hex characters
    """
    return f"task_{uuid4().hex[:12]}"


def generate_cluster_id(cluster_type: str, memory_ids: list[str]) -> str:
    """
    Generate a deterministic cluster ID from its type and members.

    The same type and member set always produce the same ID, regardless of
    member order.

    Args:
        cluster_type: Cluster type label
        memory_ids: Member memory IDs

    Returns:
        ID in format "cluster_xxx" where xxx is 12 hex characters
    """
    key = cluster_type + "|" + ",".join(sorted(memory_ids))
    return f"cluster_{hashlib.sha256(key.encode('utf-8')).hexdigest()[:12]}"
