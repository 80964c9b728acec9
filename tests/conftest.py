"""
Pytest configuration and fixtures.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from internal.domain.metrics import BehavioralMetricRecord, SearchMetricRecord
from internal.domain.taxonomy import NodeSource, Product, TaxonomyNode


def make_node(
    node_id: str,
    title: str,
    depth: int = 1,
    parent_id=None,
    product_count: int = 0,
    source: NodeSource = NodeSource.CATALOG,
    metadata=None,
) -> TaxonomyNode:
    """Build a taxonomy node with a path derived from its ID."""
    return TaxonomyNode(
        id=node_id,
        title=title,
        path=node_id.replace("-", "/"),
        depth=depth,
        parent_id=parent_id,
        product_count=product_count,
        source=source,
        metadata=metadata or {},
    )


@pytest.fixture
def phone_products():
    """Two products under Electronics > Phones."""
    return [
        Product(
            id="p1",
            title="Pixel",
            product_type="Electronics > Phones > Smartphones",
            url="https://shop.example.com/p/p1",
            price=699.0,
            availability="in stock",
            image_url="https://cdn.example.com/p1.jpg",
        ),
        Product(
            id="p2",
            title="Nokia 105",
            product_type="Electronics > Phones > Feature Phones",
            url="https://shop.example.com/p/p2",
            price=19.0,
            availability="out of stock",
        ),
    ]


@pytest.fixture
def tree_nodes():
    """Small canonical tree: electronics -> phones -> {smartphones, feature phones}."""
    return {
        "electronics": make_node("electronics", "Electronics", 1, None, 2),
        "electronics-phones": make_node(
            "electronics-phones", "Phones", 2, "electronics", 2
        ),
        "electronics-phones-smartphones": make_node(
            "electronics-phones-smartphones", "Smartphones", 3, "electronics-phones", 1
        ),
        "electronics-phones-feature-phones": make_node(
            "electronics-phones-feature-phones", "Feature Phones", 3, "electronics-phones", 1
        ),
    }


@pytest.fixture
def search_records():
    """Search rows for the two leaf landing pages."""
    return [
        SearchMetricRecord(url="/smartphones", clicks=30, impressions=1000, position=4.0),
        SearchMetricRecord(url="/feature-phones", clicks=10, impressions=3000, position=8.0),
    ]


@pytest.fixture
def behavioral_records():
    """Analytics rows for the two leaf landing pages."""
    return [
        BehavioralMetricRecord(
            page_path="/smartphones",
            node_id="electronics-phones-smartphones",
            revenue=500.0,
            transactions=5,
            sessions=100,
            users=80,
            page_views=300,
            engagement_rate=0.6,
            bounce_rate=0.4,
        ),
        BehavioralMetricRecord(
            page_path="/feature-phones",
            node_id="electronics-phones-feature-phones",
            revenue=100.0,
            transactions=5,
            sessions=300,
            users=250,
            page_views=500,
            engagement_rate=0.2,
            bounce_rate=0.8,
        ),
    ]


@pytest.fixture
def mock_conn():
    """asyncpg connection double supporting ``async with conn.transaction()``."""
    conn = MagicMock()
    conn.execute = AsyncMock(return_value="INSERT 0 1")
    conn.executemany = AsyncMock(return_value=None)
    conn.fetch = AsyncMock(return_value=[])
    return conn


@pytest.fixture
def mock_pool(mock_conn):
    """asyncpg pool double handing out mock_conn."""
    pool = MagicMock()
    pool.acquire.return_value.__aenter__.return_value = mock_conn
    return pool
