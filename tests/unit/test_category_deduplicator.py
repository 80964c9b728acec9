"""
Unit tests for CategoryDeduplicator.
"""

import pytest

from conftest import make_node
from internal.domain.errors import TaxonomyCycleError
from internal.domain.taxonomy import MergeResult, NodeSource, Product, TaxonomyNode
from internal.usecase.category_deduplicator import CategoryDeduplicator
from internal.usecase.taxonomy_builder import TaxonomyBuilder


def snapshot(nodes):
    """Comparable view of a node map."""
    return {node_id: node.to_dict() for node_id, node in nodes.items()}


class TestCategoryDeduplicator:
    """Tests for sibling merging."""

    @pytest.fixture
    def dedup(self):
        """Create deduplicator instance."""
        return CategoryDeduplicator()

    @pytest.fixture
    def accessory_nodes(self):
        """Parent with two near-duplicate children."""
        return {
            "fashion": make_node("fashion", "Fashion", 1, None, 10),
            "fashion-accessory": make_node(
                "fashion-accessory", "Accessory", 2, "fashion", 3
            ),
            "fashion-accessories": make_node(
                "fashion-accessories", "Accessories", 2, "fashion", 7
            ),
        }

    def test_plural_siblings_merge(self, dedup, accessory_nodes):
        """Test Accessory(3) + Accessories(7) -> Accessories(10)."""
        merged = dedup.merge(accessory_nodes)

        assert set(merged) == {"fashion", "fashion-accessories"}
        assert merged["fashion-accessories"].title == "Accessories"
        assert merged["fashion-accessories"].product_count == 10
        assert merged["fashion"].product_count == 10

    def test_input_is_not_mutated(self, dedup, accessory_nodes):
        """Test that merge works on copies."""
        before = snapshot(accessory_nodes)

        dedup.merge(accessory_nodes)

        assert snapshot(accessory_nodes) == before

    def test_merge_report(self, dedup, accessory_nodes):
        """Test that the report maps losers to survivors."""
        result = dedup.merge_with_report(accessory_nodes)

        assert isinstance(result, MergeResult)
        assert result.merge_map == {"fashion-accessory": "fashion-accessories"}
        assert result.total_merges == 1
        assert result.chained_merges == []

    def test_idempotent(self, dedup, accessory_nodes):
        """Test that merging the merged output is a no-op."""
        once = dedup.merge(accessory_nodes)
        twice = dedup.merge(once)

        assert snapshot(twice) == snapshot(once)

    def test_tie_break_by_title(self, dedup):
        """Test that equal counts keep the lexicographically smaller title."""
        nodes = {
            "b": make_node("b", "Accessory", 1, None, 4),
            "a": make_node("a", "Accessories", 1, None, 4),
        }

        merged = dedup.merge(nodes)

        assert list(merged) == ["a"]
        assert merged["a"].product_count == 8

    def test_larger_count_survives(self, dedup):
        """Test that the node with more products survives regardless of title."""
        nodes = {
            "shoe": make_node("shoe", "Shoe", 1, None, 9),
            "shoes": make_node("shoes", "Shoes", 1, None, 2),
        }

        merged = dedup.merge(nodes)

        assert list(merged) == ["shoe"]
        assert merged["shoe"].product_count == 11

    def test_no_cross_parent_merge(self, dedup):
        """Test that identical titles under different parents stay distinct."""
        nodes = {
            "men": make_node("men", "Men", 1, None, 1),
            "women": make_node("women", "Women", 1, None, 1),
            "men-running": make_node("men-running", "Running", 2, "men", 1),
            "women-running": make_node("women-running", "Running", 2, "women", 1),
        }

        merged = dedup.merge(nodes)

        assert set(merged) == set(nodes)

    def test_hybrid_source_and_metadata(self, dedup):
        """Test source upgrade and metadata copy from the loser."""
        nodes = {
            "bags": make_node(
                "bags", "Bags", 1, None, 5,
                metadata={"catalog_category": "Bags"},
            ),
            "bag": make_node(
                "bag", "Bag", 1, None, 1,
                source=NodeSource.STANDARDIZED,
                metadata={"standardized_category": "Luggage & Bags"},
            ),
        }

        merged = dedup.merge(nodes)

        survivor = merged["bags"]
        assert survivor.source == NodeSource.HYBRID
        assert survivor.metadata == {
            "catalog_category": "Bags",
            "standardized_category": "Luggage & Bags",
        }

    def test_children_reparented_and_merged(self, dedup):
        """Test that children of a loser move under the survivor and merge there."""
        nodes = {
            "shoe": make_node("shoe", "Shoe", 1, None, 2),
            "shoes": make_node("shoes", "Shoes", 1, None, 5),
            "shoe-running": make_node("shoe-running", "Running", 2, "shoe", 2),
            "shoes-running": make_node("shoes-running", "Running", 2, "shoes", 3),
        }
        assignments = {
            "shoe-running": {"a", "b"},
            "shoes-running": {"c", "d", "e"},
            "shoes": {"f", "g"},
        }

        result = dedup.merge_with_report(nodes)
        remapped = result.remap_assignments(assignments)

        assert set(result.nodes) == {"shoes", "shoes-running"}
        assert result.nodes["shoes-running"].parent_id == "shoes"
        assert result.nodes["shoes-running"].product_count == 5
        assert result.nodes["shoes"].product_count == 7
        assert remapped == {"shoes": {"f", "g"}, "shoes-running": {"a", "b", "c", "d", "e"}}

    def test_transitive_chain_resolves_to_final_survivor(self, dedup):
        """Test A~B, B~C, A!~C folds everything into C."""
        nodes = {
            "n1": make_node("n1", "E Bike", 1, None, 1),
            "n2": make_node("n2", "E-Bike", 1, None, 2),
            "n3": make_node("n3", "E-Bikes", 1, None, 3),
        }

        result = dedup.merge_with_report(nodes)

        assert set(result.nodes) == {"n3"}
        assert result.nodes["n3"].product_count == 6
        assert result.merge_map == {"n1": "n3", "n2": "n3"}
        assert result.chained_merges == ["n1"]

    def test_threshold_is_exclusive(self):
        """Test that a score equal to the threshold does not merge."""
        dedup = CategoryDeduplicator(similarity_threshold=0.95)
        nodes = {
            "shoe": make_node("shoe", "Shoe", 1, None, 1),
            "shoes": make_node("shoes", "Shoes", 1, None, 1),
        }

        assert set(dedup.merge(nodes)) == {"shoe", "shoes"}

    def test_distinct_siblings_untouched(self, dedup, tree_nodes):
        """Test that unrelated siblings are left as they are."""
        merged = dedup.merge(tree_nodes)

        assert snapshot(merged) == snapshot(tree_nodes)

    def test_resolve_detects_loops(self, dedup):
        """Test that a looping decision table is reported as a cycle."""
        with pytest.raises(TaxonomyCycleError):
            dedup._resolve({"a": "b", "b": "a"}, "a")

    def test_empty_input(self, dedup):
        """Test that an empty map merges to an empty map."""
        assert dedup.merge({}) == {}


class TestTaxonomyNodeCopy:
    """Tests for node copies used by the deduplicator."""

    def test_copy_is_independent(self):
        """Test that metadata is not shared with the copy."""
        node = TaxonomyNode(id="a", title="A", path="A", depth=1, metadata={"k": "v"})

        clone = node.copy()
        clone.metadata["k"] = "changed"
        clone.product_count = 5

        assert node.metadata == {"k": "v"}
        assert node.product_count == 0


class TestBuiltTaxonomyMerge:
    """Tests for deduplicating a taxonomy built from a messy feed."""

    @pytest.fixture
    def messy_products(self):
        """Feed with mixed delimiters plus plural and "&" variants at several depths."""
        paths = [
            "Home & Garden > Lamps > Desk Lamp",
            "Home and Garden / Lamp | Desk Lamps",
            "Home & Garden > Lamps > Floor Lamps",
            "Home and Garden",
            "Home & Garden|Rugs",
            "Fashion|Accessory",
            "Fashion > Accessories > Belts",
            "Fashion / Accessories / Belt",
            "Fashion > Bags",
            "Fashion > Bag",
            "Toys",
        ]
        return [Product(id=f"p{i}", product_type=path) for i, path in enumerate(paths)]

    def test_counts_conserved_after_merge(self, messy_products):
        """Every surviving node counts its direct products plus its children."""
        built = TaxonomyBuilder().build(messy_products)

        result = CategoryDeduplicator().merge_with_report(built.nodes)
        assignments = result.remap_assignments(built.product_assignments)

        assert result.total_merges > 0
        for node in result.nodes.values():
            direct = len(assignments.get(node.id, ()))
            children = sum(
                child.product_count
                for child in result.nodes.values()
                if child.parent_id == node.id
            )
            assert node.product_count == direct + children, node.id
        roots = [n for n in result.nodes.values() if n.parent_id is None]
        assert sum(n.product_count for n in roots) == len(messy_products)
        assert set(assignments) <= set(result.nodes)

    def test_merge_of_built_taxonomy_is_idempotent(self, messy_products):
        """Merging the canonical tree again changes nothing."""
        built = TaxonomyBuilder().build(messy_products)
        dedup = CategoryDeduplicator()

        once = dedup.merge(built.nodes)
        twice = dedup.merge_with_report(once)

        assert twice.merge_map == {}
        assert snapshot(twice.nodes) == snapshot(once)
