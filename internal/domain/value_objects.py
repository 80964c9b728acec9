"""
Value Objects for the taxonomy and scoring domain.

Value objects are immutable and defined by their attributes.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from .errors import DomainValidationError


def round_half_up(value: float, places: int) -> float:
    """
    Round a float half-up to a fixed number of decimal places.

    Python's round() uses banker's rounding; exported metrics must be stable
    and match the conventional half-up behaviour.

    Args:
        value: Value to round.
        places: Number of decimal places.

    Returns:
        Rounded float.
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class WeightedValue:
    """
    A rate observation together with the traffic volume that backs it.

    Attributes:
        value: The observed rate or position.
        weight: Impressions or sessions behind the observation.
    """
    value: float
    weight: float

    def __post_init__(self) -> None:
        """Validate weight constraints."""
        if self.weight < 0:
            raise DomainValidationError("Weight cannot be negative")


def weighted_mean(values: list[WeightedValue]) -> float:
    """
    Compute the weighted mean of a list of observations.

    Args:
        values: Observations with their weights.

    Returns:
        Weighted mean, or 0.0 when the total weight is zero.
    """
    total_weight = 0.0
    weighted_sum = 0.0
    for item in values:
        weighted_sum += item.value * item.weight
        total_weight += item.weight

    if total_weight <= 0:
        return 0.0
    return weighted_sum / total_weight


@dataclass(frozen=True)
class CompetitiveData:
    """
    Competitive landscape for a category.

    Attributes:
        competitor_count: Number of competitors ranking for the category.
        domain_authority: Our domain authority (0-100).
    """
    competitor_count: Optional[int] = None
    domain_authority: Optional[float] = None

    def __post_init__(self) -> None:
        """Validate competitive data constraints."""
        if self.competitor_count is not None and self.competitor_count < 0:
            raise DomainValidationError("Competitor count cannot be negative")
        if self.domain_authority is not None and not (
            0 <= self.domain_authority <= 100
        ):
            raise DomainValidationError("Domain authority must be between 0 and 100")

    @property
    def is_empty(self) -> bool:
        """Whether no competitive signal is available."""
        return self.competitor_count is None and self.domain_authority is None


@dataclass(frozen=True)
class CatalogProfile:
    """
    Catalog completeness indicators for a category subtree.

    Attributes:
        product_count: Products in the subtree.
        in_stock_ratio: Share of products in stock (0-1).
        has_images_ratio: Share of products with an image (0-1).
        avg_price: Average price of priced products.
    """
    product_count: int = 0
    in_stock_ratio: float = 0.0
    has_images_ratio: float = 0.0
    avg_price: float = 0.0

    def __post_init__(self) -> None:
        """Validate catalog profile constraints."""
        if self.product_count < 0:
            raise DomainValidationError("Product count cannot be negative")
        for name in ("in_stock_ratio", "has_images_ratio"):
            ratio = getattr(self, name)
            if not (0.0 <= ratio <= 1.0):
                raise DomainValidationError(f"{name} must be between 0 and 1")
        if self.avg_price < 0:
            raise DomainValidationError("Average price cannot be negative")
