"""Semantic clustering - coherence-scored memory groups built from scratch on every call."""

from collections import defaultdict

import numpy as np
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

from wellmind.models.memory import MemoryEntry
from wellmind.models.relationships import SemanticCluster
from wellmind.utils.id_generator import generate_cluster_id
from wellmind.utils.logger import get_logger
from wellmind.utils.text import STOPWORDS, strip_punctuation

logger = get_logger(__name__)


class SemanticClusterBuilder:
    """
    Groups active memories by category and scores each group's coherence.

    Coherence is the mean pairwise TF-IDF cosine similarity of the members.
    Output is fully determined by the input: IDs derive from the member set,
    ``last_updated`` is the newest member update, and ordering is stable.
    """

    def __init__(self, min_cluster_size: int = 2, min_token_length: int = 3, top_terms: int = 5):
        """
        Initialize cluster builder.

        Args:
            min_cluster_size: Minimum members for a group to become a cluster
            min_token_length: Minimum word length considered by TF-IDF
            top_terms: Number of characteristic terms reported per cluster
        """
        self.min_cluster_size = min_cluster_size
        self.min_token_length = min_token_length
        self.top_terms = top_terms

    def build(self, memories: list[MemoryEntry]) -> list[SemanticCluster]:
        """
        Build clusters over a memory set.

        Args:
            memories: Memories to cluster (inactive ones are ignored)

        Returns:
            Clusters ordered by coherence (highest first), then type
        """
        groups: dict[str, list[MemoryEntry]] = defaultdict(list)
        for memory in memories:
            if memory.is_active:
                groups[memory.category.value].append(memory)

        clusters = []
        for cluster_type in sorted(groups):
            members = sorted(groups[cluster_type], key=lambda m: m.id)
            if len(members) < self.min_cluster_size:
                continue

            coherence, terms = self._score(members)
            memory_ids = [m.id for m in members]
            clusters.append(
                SemanticCluster(
                    id=generate_cluster_id(cluster_type, memory_ids),
                    cluster_type=cluster_type,
                    memory_ids=memory_ids,
                    coherence_score=coherence,
                    top_terms=terms,
                    last_updated=max(m.updated_at for m in members),
                )
            )

        clusters.sort(key=lambda c: (-c.coherence_score, c.cluster_type))
        logger.debug(f"Built {len(clusters)} semantic clusters from {len(memories)} memories")
        return clusters

    def _score(self, members: list[MemoryEntry]) -> tuple[float, list[str]]:
        """Mean pairwise cosine similarity and the heaviest TF-IDF terms."""
        vectorizer = TfidfVectorizer(
            preprocessor=strip_punctuation,
            token_pattern=rf"(?u)\b[a-z0-9]{{{self.min_token_length},}}\b",
            stop_words=sorted(STOPWORDS),
        )
        try:
            matrix = vectorizer.fit_transform([m.content for m in members])
        except ValueError:
            # Empty vocabulary: nothing but stopwords or short tokens
            return 0.0, []

        similarities = cosine_similarity(matrix)
        upper = similarities[np.triu_indices(len(members), k=1)]
        coherence = float(np.clip(upper.mean(), 0.0, 1.0)) if upper.size else 0.0

        weights = np.asarray(matrix.sum(axis=0)).ravel()
        vocabulary = vectorizer.get_feature_names_out()
        ranked = sorted(zip(vocabulary, weights, strict=True), key=lambda item: (-item[1], item[0]))
        terms = [str(term) for term, _ in ranked[: self.top_terms]]

        return round(coherence, 4), terms
