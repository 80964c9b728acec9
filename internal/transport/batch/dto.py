"""
Data Transfer Objects for the batch snapshot.

Contains Pydantic models validating the JSON snapshot a pipeline run reads.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from internal.domain.metrics import BehavioralMetricRecord, SearchMetricRecord
from internal.domain.taxonomy import Product
from internal.domain.value_objects import CompetitiveData
from internal.usecase.opportunity_pipeline import PipelineInput

_PRICE_RE = re.compile(r"-?\d[\d.,]*")


def parse_price_text(text: str) -> Optional[float]:
    """
    Parse a feed price string into a number.

    Both "1,234.56 USD" and "1.234,56 EUR" are understood: when both "." and
    "," occur, the last one is the decimal mark. A lone "," is a decimal mark
    unless exactly three digits follow it; repeated marks are grouping.

    Args:
        text: Raw price, e.g. "89.90 USD".

    Returns:
        Parsed price, or None when the text holds no digits.
    """
    match = _PRICE_RE.search(text)
    if match is None:
        return None
    number = match.group().rstrip(".,")

    if "." in number and "," in number:
        decimal_mark = "." if number.rfind(".") > number.rfind(",") else ","
    elif number.count(",") == 1:
        decimal_mark = "," if len(number) - number.index(",") - 1 != 3 else ""
    elif number.count(".") == 1:
        decimal_mark = "."
    else:
        decimal_mark = ""

    grouping = {".", ","} - {decimal_mark}
    digits = "".join(c for c in number if c not in grouping)
    return float(digits.replace(",", "."))


class ProductDTO(BaseModel):
    """Product record from the merchant feed."""

    id: str = Field(..., min_length=1, description="Catalog product ID")
    title: str = Field("", description="Product title")
    product_type: Optional[str] = Field(None, description="Merchant category path")
    google_product_category: Optional[str] = Field(
        None, description="Standardized category path"
    )
    url: Optional[str] = Field(None, alias="link", description="Landing page URL")
    price: Optional[float] = Field(None, ge=0, description="Product price")
    availability: Optional[str] = Field(None, description="Stock status")
    image_url: Optional[str] = Field(None, alias="image_link", description="Main image URL")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "id": "sku-1",
                "title": "Trail Running Shoe",
                "product_type": "Apparel > Shoes > Running",
                "link": "https://shop.example.com/p/sku-1",
                "price": "89.90 USD",
                "availability": "in stock",
            }
        }

    @field_validator("price", mode="before")
    @classmethod
    def parse_price(cls, v):
        """Accept feed prices such as "89.90 USD" or "1.234,56 EUR"."""
        if isinstance(v, str):
            return parse_price_text(v)
        return v

    def to_domain(self) -> Product:
        """Convert to domain entity."""
        return Product(
            id=self.id,
            title=self.title,
            product_type=self.product_type,
            google_product_category=self.google_product_category,
            url=self.url,
            price=self.price,
            availability=self.availability,
            image_url=self.image_url,
        )


class SearchMetricDTO(BaseModel):
    """Per-URL search performance row."""

    url: str = Field(..., min_length=1, alias="page", description="Landing page URL")
    clicks: int = Field(0, ge=0, description="Clicks")
    impressions: int = Field(0, ge=0, description="Impressions")
    ctr: float = Field(0.0, ge=0, le=1, description="Click-through rate")
    position: float = Field(0.0, ge=0, description="Average position")

    class Config:
        populate_by_name = True

    def to_domain(self) -> SearchMetricRecord:
        """Convert to domain record."""
        return SearchMetricRecord(
            url=self.url,
            clicks=self.clicks,
            impressions=self.impressions,
            ctr=self.ctr,
            position=self.position,
        )


class BehavioralMetricDTO(BaseModel):
    """Per-page analytics row, as exported by the analytics collaborator."""

    page_path: str = Field(..., min_length=1, alias="pagePath", description="Page path")
    node_id: Optional[str] = Field(None, alias="nodeId", description="Resolved node ID")
    revenue: float = Field(0.0, ge=0, description="Revenue")
    transactions: int = Field(0, ge=0, description="Transactions")
    sessions: int = Field(0, ge=0, description="Sessions")
    users: int = Field(0, ge=0, description="Users")
    page_views: int = Field(0, ge=0, alias="pageViews", description="Page views")
    conversion_rate: float = Field(0.0, ge=0, alias="conversionRate", description="Conversion rate")
    avg_order_value: float = Field(0.0, ge=0, alias="avgOrderValue", description="Average order value")
    engagement_rate: float = Field(0.0, ge=0, le=1, alias="engagementRate", description="Engagement rate")
    bounce_rate: float = Field(0.0, ge=0, le=1, alias="bounceRate", description="Bounce rate")

    class Config:
        populate_by_name = True

    def to_domain(self) -> BehavioralMetricRecord:
        """Convert to domain record."""
        return BehavioralMetricRecord(
            page_path=self.page_path,
            node_id=self.node_id,
            revenue=self.revenue,
            transactions=self.transactions,
            sessions=self.sessions,
            users=self.users,
            page_views=self.page_views,
            conversion_rate=self.conversion_rate,
            avg_order_value=self.avg_order_value,
            engagement_rate=self.engagement_rate,
            bounce_rate=self.bounce_rate,
        )


class CompetitiveDataDTO(BaseModel):
    """Competitive landscape for one category."""

    competitor_count: Optional[int] = Field(None, ge=0, description="Competitors ranking")
    domain_authority: Optional[float] = Field(None, ge=0, le=100, description="Domain authority")

    def to_domain(self) -> CompetitiveData:
        """Convert to value object."""
        return CompetitiveData(
            competitor_count=self.competitor_count,
            domain_authority=self.domain_authority,
        )


class SnapshotDTO(BaseModel):
    """Full input snapshot for one pipeline run."""

    products: List[ProductDTO] = Field(default_factory=list, description="Catalog products")
    search_metrics: List[SearchMetricDTO] = Field(default_factory=list, description="Search rows")
    behavioral_metrics: List[BehavioralMetricDTO] = Field(
        default_factory=list, description="Analytics rows"
    )
    url_to_node: Optional[Dict[str, str]] = Field(None, description="Explicit URL -> node ID map")
    competitive_data: Dict[str, CompetitiveDataDTO] = Field(
        default_factory=dict, description="Node ID -> competitive data"
    )

    def to_pipeline_input(self) -> PipelineInput:
        """
        Convert to pipeline input.

        Returns:
            PipelineInput with domain objects.
        """
        return PipelineInput(
            products=[p.to_domain() for p in self.products],
            search_metrics=[m.to_domain() for m in self.search_metrics],
            behavioral_metrics=[m.to_domain() for m in self.behavioral_metrics],
            url_to_node=dict(self.url_to_node) if self.url_to_node is not None else None,
            competitive_data={
                node_id: data.to_domain() for node_id, data in self.competitive_data.items()
            },
        )
