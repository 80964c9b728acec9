"""
Taxonomy Builder Use Case.

Builds a hierarchical category tree from the raw category paths of a
product feed and assigns every product to its deepest category.
"""
import hashlib
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from internal.domain.errors import DanglingParentError, TaxonomyCycleError
from internal.domain.taxonomy import (
    NodeSource,
    Product,
    TaxonomyBuildResult,
    TaxonomyNode,
)
from pkg.logger.logger import get_logger

logger = get_logger(__name__)

PATH_SEPARATOR = " > "
ID_SEPARATOR = "-"

_DELIMITER_RE = re.compile(r"\s*[>/|]\s*")
_WHITESPACE_RE = re.compile(r"\s+")
_NON_ALNUM_RE = re.compile(r"[\W_]+")


@dataclass(frozen=True)
class _PathEntry:
    """A category path to materialize; product_id is None for supplementary paths."""
    product_id: Optional[str]
    path: str
    segments: list[str]
    source: NodeSource


def normalize_path(raw_path: Optional[str]) -> str:
    """
    Normalize a raw category path string.

    Any of ">", "/" and "|" (with surrounding whitespace) becomes the
    canonical " > " separator; whitespace runs collapse to one space and
    empty segments are dropped.

    Args:
        raw_path: Category path as supplied by the feed.

    Returns:
        Normalized path, or "" when nothing usable remains.
    """
    if not raw_path:
        return ""

    collapsed = _DELIMITER_RE.sub(PATH_SEPARATOR, raw_path)
    collapsed = _WHITESPACE_RE.sub(" ", collapsed)
    return PATH_SEPARATOR.join(split_path(collapsed))


def split_path(normalized_path: str) -> list[str]:
    """
    Split a normalized path into trimmed, non-empty segments.

    Args:
        normalized_path: Output of normalize_path.

    Returns:
        Ordered list of segments.
    """
    segments = (s.strip() for s in normalized_path.split(PATH_SEPARATOR.strip()))
    return [s for s in segments if s]


def generate_node_id(sub_path: str) -> str:
    """
    Derive a stable node ID from an accumulated sub-path.

    Args:
        sub_path: Segments joined with "/".

    Returns:
        Lower-cased ID with non-alphanumeric runs collapsed to "-".
    """
    return _NON_ALNUM_RE.sub(ID_SEPARATOR, sub_path.lower()).strip(ID_SEPARATOR)


def _collision_suffix(parent_id: Optional[str], node_id: str) -> str:
    """Short stable hash distinguishing a colliding node by its parent."""
    key = f"{parent_id or ''}>{node_id}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:8]


def humanize_title(segment: str) -> str:
    """
    Turn a raw path segment into a display title.

    Args:
        segment: Raw segment, e.g. "home-appliances".

    Returns:
        Title with each word capitalized, e.g. "Home Appliances".
    """
    words = segment.replace("-", " ").replace("_", " ").split()
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)


def propagate_counts(
    nodes: dict[str, TaxonomyNode],
    product_assignments: dict[str, set[str]],
) -> None:
    """
    Set every node's product count to its direct plus descendant assignments.

    Counts are reset first, so the function can be re-applied to the same
    tree. The parent chain of every node is validated before any count is
    written.

    Args:
        nodes: Node map to update in place.
        product_assignments: Node ID -> directly assigned product IDs.

    Raises:
        DanglingParentError: A node references a parent outside the node set.
        TaxonomyCycleError: A parent chain loops.
    """
    for node_id in sorted(nodes):
        _validate_parent_chain(nodes, node_id)

    for node in nodes.values():
        node.product_count = 0

    for node_id in sorted(product_assignments):
        count = len(product_assignments[node_id])
        if count == 0:
            continue
        if node_id not in nodes:
            logger.warning(
                "Assignments reference unknown node",
                node_id=node_id,
                product_total=count,
            )
            continue

        current: Optional[str] = node_id
        while current is not None:
            node = nodes[current]
            node.product_count += count
            current = node.parent_id


def _validate_parent_chain(nodes: dict[str, TaxonomyNode], node_id: str) -> None:
    """
    Walk a node's ancestors and fail on dangling references or cycles.

    Args:
        nodes: Node map.
        node_id: Node to validate.
    """
    seen = {node_id}
    current = nodes[node_id]
    while current.parent_id is not None:
        parent = nodes.get(current.parent_id)
        if parent is None:
            raise DanglingParentError(current.id, current.parent_id)
        if parent.id in seen:
            raise TaxonomyCycleError(parent.id)
        seen.add(parent.id)
        current = parent


class TaxonomyBuilder:
    """
    Builds a taxonomy tree from a product feed.

    This use case:
    1. Picks each product's category path (merchant path, else standardized)
    2. Creates one node per path prefix
    3. Assigns each product to its deepest node
    4. Propagates product counts up the tree
    """

    def __init__(self, include_standardized_paths: bool = False) -> None:
        """
        Initialize the builder.

        Args:
            include_standardized_paths: Also create nodes from the
                standardized path of products that have a merchant path.
        """
        self._include_standardized_paths = include_standardized_paths

    def build(self, products: Iterable[Product]) -> TaxonomyBuildResult:
        """
        Build the taxonomy for a product snapshot.

        Args:
            products: Products with raw category paths.

        Returns:
            Build result with nodes, assignments and skipped products.
        """
        result = TaxonomyBuildResult()
        seen_products: set[str] = set()
        entries: list[_PathEntry] = []

        for product in products:
            if product.id in seen_products:
                result.duplicate_product_ids.append(product.id)
                continue
            seen_products.add(product.id)

            path, source = self._select_path(product)
            if not path:
                result.unassigned_product_ids.append(product.id)
                continue

            entries.append(_PathEntry(product.id, path, split_path(path), source))

            if self._include_standardized_paths and source == NodeSource.CATALOG:
                standardized = normalize_path(product.google_product_category)
                if standardized:
                    entries.append(
                        _PathEntry(
                            None,
                            standardized,
                            split_path(standardized),
                            NodeSource.STANDARDIZED,
                        )
                    )

        leaf_ids = self._create_nodes(result, entries)
        for entry, leaf_id in zip(entries, leaf_ids):
            if entry.product_id is not None:
                result.product_assignments.setdefault(leaf_id, set()).add(
                    entry.product_id
                )

        propagate_counts(result.nodes, result.product_assignments)

        if result.unassigned_product_ids:
            logger.warning(
                "Products without usable category path skipped",
                unassigned=len(result.unassigned_product_ids),
            )
        if result.duplicate_product_ids:
            logger.warning(
                "Duplicate product IDs ignored",
                duplicates=len(result.duplicate_product_ids),
            )

        logger.info(
            "Taxonomy built",
            node_total=len(result.nodes),
            assigned=result.assigned_count,
            id_collisions=len(result.id_collisions),
        )

        return result

    def _select_path(self, product: Product) -> tuple[str, NodeSource]:
        """
        Choose the category path used for a product.

        Args:
            product: Product record.

        Returns:
            Tuple of (normalized path, source tag); path is "" if unusable.
        """
        primary = normalize_path(product.product_type)
        if primary:
            return primary, NodeSource.CATALOG

        fallback = normalize_path(product.google_product_category)
        if fallback:
            return fallback, NodeSource.STANDARDIZED

        return "", NodeSource.CATALOG

    def _create_nodes(
        self,
        result: TaxonomyBuildResult,
        entries: list[_PathEntry],
    ) -> list[str]:
        """
        Create the nodes of all paths, one depth level at a time.

        Different sub-paths can derive the same ID (root "Home Garden" and
        "Home > Garden" both give "home-garden"). The shallowest claimant
        keeps the plain ID, ties going to the smallest parent ID; every other
        claimant gets the ID suffixed with a hash of its parent ID. This keeps
        IDs independent of product order.

        Args:
            result: Build result whose node map is extended.
            entries: Paths in feed order.

        Returns:
            ID of the deepest node of each entry, aligned with entries.
        """
        nodes = result.nodes
        parents: list[Optional[str]] = [None] * len(entries)
        max_depth = max((len(entry.segments) for entry in entries), default=0)

        for depth in range(1, max_depth + 1):
            level = [i for i, entry in enumerate(entries) if len(entry.segments) >= depth]

            claims: dict[str, set[Optional[str]]] = {}
            for i in level:
                base_id = generate_node_id("/".join(entries[i].segments[:depth]))
                claims.setdefault(base_id, set()).add(parents[i])
            owners = {
                base_id: min(claimants, key=lambda p: p or "")
                for base_id, claimants in claims.items()
                if base_id not in nodes
            }

            for i in level:
                entry = entries[i]
                parent_id = parents[i]
                sub_path = "/".join(entry.segments[:depth])
                node_id = generate_node_id(sub_path)

                if node_id not in owners or owners[node_id] != parent_id:
                    base_id = node_id
                    node_id = f"{base_id}{ID_SEPARATOR}{_collision_suffix(parent_id, base_id)}"
                    if node_id not in nodes:
                        result.id_collisions.append(sub_path)
                        logger.warning(
                            "Node ID already claimed by another category",
                            node_id=base_id,
                            sub_path=sub_path,
                            assigned_id=node_id,
                        )

                if node_id not in nodes:
                    metadata_key = (
                        "catalog_category" if entry.source == NodeSource.CATALOG
                        else "standardized_category"
                    )
                    nodes[node_id] = TaxonomyNode(
                        id=node_id,
                        title=humanize_title(entry.segments[depth - 1]),
                        path=sub_path,
                        depth=depth,
                        parent_id=parent_id,
                        source=entry.source,
                        metadata={metadata_key: entry.path, "created_from": "feed"},
                    )

                parents[i] = node_id

        return [node_id for node_id in parents if node_id is not None]
