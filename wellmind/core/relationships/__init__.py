"""
Relationship discovery and semantic clustering.

- RelationshipEngine: typed, scored relationships between memories
- SemanticClusterBuilder: coherence-scored memory clusters
"""

from wellmind.core.relationships.clustering import SemanticClusterBuilder
from wellmind.core.relationships.engine import RelationshipEngine

__all__ = [
    "RelationshipEngine",
    "SemanticClusterBuilder",
]
