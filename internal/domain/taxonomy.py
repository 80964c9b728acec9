"""
Domain model for the catalog taxonomy.

This module contains the taxonomy tree entities built from product feeds.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class NodeSource(str, Enum):
    """Which taxonomy a node was derived from."""

    CATALOG = "catalog"
    STANDARDIZED = "standardized-taxonomy"
    HYBRID = "hybrid"


@dataclass
class Product:
    """
    Product record as supplied by catalog ingestion.

    Attributes:
        id: Catalog-assigned product ID.
        title: Display title.
        product_type: Merchant-defined category path (primary taxonomy).
        google_product_category: Standardized category path (fallback taxonomy).
        url: Product landing page URL.
        price: Product price.
        availability: Stock status as reported by the feed.
        image_url: Main product image.
    """

    id: str
    title: str = ""
    product_type: Optional[str] = None
    google_product_category: Optional[str] = None
    url: Optional[str] = None
    price: Optional[float] = None
    availability: Optional[str] = None
    image_url: Optional[str] = None

    @property
    def is_in_stock(self) -> bool:
        """Whether the feed reports the product as available."""
        if not self.availability:
            return False
        return self.availability.strip().lower().replace("_", " ") in (
            "in stock",
            "instock",
            "available",
            "preorder",
        )

    @property
    def has_image(self) -> bool:
        """Whether the product has a main image."""
        return bool(self.image_url and self.image_url.strip())


@dataclass
class TaxonomyNode:
    """
    TaxonomyNode entity representing a category in the taxonomy tree.

    Attributes:
        id: Stable identifier derived from the normalized path.
        title: Humanized display title.
        path: Full path with segments joined by "/".
        depth: Level in the hierarchy (1 = root).
        parent_id: ID of the parent node (None for roots).
        product_count: Direct plus descendant product count.
        source: Taxonomy the node came from.
        metadata: Original category strings and provenance.
    """

    id: str
    title: str
    path: str
    depth: int
    parent_id: Optional[str] = None
    product_count: int = 0
    source: NodeSource = NodeSource.CATALOG
    metadata: dict = field(default_factory=dict)

    def copy(self) -> "TaxonomyNode":
        """
        Return an independent copy of the node.

        Returns:
            New TaxonomyNode with a copied metadata dict.
        """
        return TaxonomyNode(
            id=self.id,
            title=self.title,
            path=self.path,
            depth=self.depth,
            parent_id=self.parent_id,
            product_count=self.product_count,
            source=self.source,
            metadata=dict(self.metadata),
        )

    def to_dict(self) -> dict:
        """
        Convert to dictionary representation.

        Returns:
            Dictionary with all node data.
        """
        return {
            "id": self.id,
            "title": self.title,
            "path": self.path,
            "depth": self.depth,
            "parent_id": self.parent_id,
            "product_count": self.product_count,
            "source": self.source.value,
            "metadata": dict(self.metadata),
        }


@dataclass
class TaxonomyBuildResult:
    """
    Output of a taxonomy build.

    Attributes:
        nodes: All nodes keyed by ID.
        product_assignments: Node ID -> IDs of products assigned directly to it.
        unassigned_product_ids: Products without a usable category path.
        duplicate_product_ids: Product IDs seen more than once (later copies ignored).
        id_collisions: Sub-paths whose derived ID was already taken by a
            structurally different node; they received a suffixed ID.
    """

    nodes: dict[str, TaxonomyNode] = field(default_factory=dict)
    product_assignments: dict[str, set[str]] = field(default_factory=dict)
    unassigned_product_ids: list[str] = field(default_factory=list)
    duplicate_product_ids: list[str] = field(default_factory=list)
    id_collisions: list[str] = field(default_factory=list)

    @property
    def assigned_count(self) -> int:
        """Number of products assigned to a node."""
        return sum(len(ids) for ids in self.product_assignments.values())

    def nodes_by_depth(self) -> list[TaxonomyNode]:
        """
        Nodes in parent-before-child order.

        Returns:
            Nodes sorted by ascending depth, then ID.
        """
        return sorted(self.nodes.values(), key=lambda n: (n.depth, n.id))


@dataclass
class MergeResult:
    """
    Output of a deduplication pass.

    Attributes:
        nodes: Surviving nodes keyed by ID.
        merge_map: Loser node ID -> final surviving node ID.
        chained_merges: Loser IDs whose survivor was itself merged away.
    """

    nodes: dict[str, TaxonomyNode] = field(default_factory=dict)
    merge_map: dict[str, str] = field(default_factory=dict)
    chained_merges: list[str] = field(default_factory=list)

    @property
    def total_merges(self) -> int:
        """Number of nodes merged away."""
        return len(self.merge_map)

    def remap_assignments(
        self, assignments: dict[str, set[str]]
    ) -> dict[str, set[str]]:
        """
        Move product assignments from merged-away nodes to their survivors.

        Args:
            assignments: Node ID -> product IDs, keyed by pre-merge node IDs.

        Returns:
            New assignment map keyed by surviving node IDs.
        """
        remapped: dict[str, set[str]] = {}
        for node_id in sorted(assignments):
            target = self.merge_map.get(node_id, node_id)
            remapped.setdefault(target, set()).update(assignments[node_id])
        return remapped
