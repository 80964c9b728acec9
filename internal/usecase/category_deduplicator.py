"""
Category Deduplicator Use Case.

Merges near-duplicate sibling categories ("Accessory" / "Accessories")
without losing product counts or breaking parent/child links.
"""
from itertools import combinations
from typing import Optional

from internal.domain.errors import TaxonomyCycleError
from internal.domain.taxonomy import MergeResult, NodeSource, TaxonomyNode
from internal.usecase.category_matcher import CategoryMatcher
from pkg.logger.logger import get_logger

logger = get_logger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.85


def _survivor_rank(node: TaxonomyNode) -> tuple:
    """Ordering key: the smallest key survives a merge."""
    return (-node.product_count, node.title.lower(), node.id)


class CategoryDeduplicator:
    """
    Merges similar categories that share a parent.

    Only siblings (same depth, same parent) are compared: identical titles
    under different parents are distinct categories. Levels are processed
    from the roots down, so children moved under a survivor are compared
    with their new siblings in the same run.
    """

    def __init__(
        self,
        matcher: Optional[CategoryMatcher] = None,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    ) -> None:
        """
        Initialize the deduplicator.

        Args:
            matcher: Title similarity scorer (optional).
            similarity_threshold: Pairs scoring strictly above this merge.
        """
        self._matcher = matcher or CategoryMatcher()
        self._threshold = similarity_threshold

    def merge(self, nodes: dict[str, TaxonomyNode]) -> dict[str, TaxonomyNode]:
        """
        Merge near-duplicate siblings.

        Args:
            nodes: Node map; left unmodified.

        Returns:
            New node map without the merged-away nodes.
        """
        return self.merge_with_report(nodes).nodes

    def merge_with_report(self, nodes: dict[str, TaxonomyNode]) -> MergeResult:
        """
        Merge near-duplicate siblings and report every decision.

        Args:
            nodes: Node map; left unmodified.

        Returns:
            MergeResult with surviving nodes and the loser -> survivor map.
        """
        result = MergeResult(
            nodes={node_id: node.copy() for node_id, node in nodes.items()}
        )

        for depth in sorted({node.depth for node in result.nodes.values()}):
            decisions = self._find_merges(result.nodes, depth)
            if decisions:
                self._apply_merges(result, decisions)

        if result.total_merges:
            logger.info(
                "Similar categories merged",
                merges=result.total_merges,
                chained=len(result.chained_merges),
                remaining=len(result.nodes),
            )

        return result

    def _find_merges(
        self, nodes: dict[str, TaxonomyNode], depth: int
    ) -> dict[str, str]:
        """
        Decide loser -> survivor pairs among siblings at one depth.

        Args:
            nodes: Current node map.
            depth: Depth level to examine.

        Returns:
            Pairwise decisions keyed by loser ID.
        """
        siblings: dict[Optional[str], list[TaxonomyNode]] = {}
        for node in nodes.values():
            if node.depth == depth:
                siblings.setdefault(node.parent_id, []).append(node)

        decisions: dict[str, str] = {}
        for parent_id in sorted(siblings, key=lambda p: (p is not None, p or "")):
            group = sorted(siblings[parent_id], key=lambda n: n.id)
            for first, second in combinations(group, 2):
                score = self._matcher.similarity(first.title, second.title)
                if score <= self._threshold:
                    continue

                survivor, loser = sorted((first, second), key=_survivor_rank)
                previous = decisions.get(loser.id)
                if previous is not None and previous != survivor.id:
                    logger.warning(
                        "Category matched several survivors, keeping last decision",
                        node_id=loser.id,
                        previous_survivor=previous,
                        survivor=survivor.id,
                    )
                decisions[loser.id] = survivor.id

        return decisions

    def _apply_merges(self, result: MergeResult, decisions: dict[str, str]) -> None:
        """
        Fold losers into their final survivors.

        Args:
            result: Merge result being built (mutated).
            decisions: Pairwise loser -> survivor decisions for one level.
        """
        nodes = result.nodes
        targets = {loser: self._resolve(decisions, loser) for loser in decisions}

        for loser_id in sorted(targets):
            survivor_id = targets[loser_id]
            if survivor_id != decisions[loser_id]:
                result.chained_merges.append(loser_id)
                logger.warning(
                    "Transitive merge chain followed to final survivor",
                    node_id=loser_id,
                    pairwise_survivor=decisions[loser_id],
                    survivor=survivor_id,
                )

            loser = nodes[loser_id]
            survivor = nodes[survivor_id]

            survivor.product_count += loser.product_count
            for key, value in loser.metadata.items():
                if value and not survivor.metadata.get(key):
                    survivor.metadata[key] = value
            if loser.source != survivor.source:
                survivor.source = NodeSource.HYBRID

            for node in nodes.values():
                if node.parent_id == loser_id:
                    node.parent_id = survivor_id

            logger.debug(
                "Merged category",
                loser=loser.title,
                survivor=survivor.title,
            )

        for loser_id, survivor_id in targets.items():
            del nodes[loser_id]
            result.merge_map[loser_id] = survivor_id

    def _resolve(self, decisions: dict[str, str], node_id: str) -> str:
        """
        Follow loser -> survivor links to the final survivor.

        Args:
            decisions: Pairwise decisions.
            node_id: Starting loser ID.

        Returns:
            ID of the node that is not merged away.
        """
        seen = {node_id}
        current = decisions[node_id]
        while current in decisions:
            if current in seen:
                raise TaxonomyCycleError(current)
            seen.add(current)
            current = decisions[current]
        return current
