"""
Canonical internal data contract.
Everything the scraper persists has this shape.
"""
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Optional, List, Dict, Any
from datetime import datetime

from ikea_scraper.errors import DataContractError

AVAILABILITY_UNKNOWN = "Check availability"
MAX_FEATURES = 5

# Field names in output order; every persisted record carries all of them.
RECORD_FIELDS = (
    "id", "name", "price", "currency", "mainImage", "images", "rating",
    "reviewCount", "availability", "description", "measurements", "type",
    "features", "sourceUrl", "category", "retrievedAt",
)


def unique(values: Optional[List[str]], limit: Optional[int] = None) -> List[str]:
    """Drop empty and repeated entries, keeping first-seen order."""
    out: List[str] = []
    for value in values or []:
        if value and value not in out:
            out.append(value)
            if limit is not None and len(out) >= limit:
                break
    return out


@dataclass(frozen=True)
class CanonicalProduct:
    """
    One catalog product, normalized from whichever strategy found it.

    Detail-only fields (description, measurements, type, features) stay None
    for listing-only records; images is empty rather than None.
    """
    id: str
    source_url: str
    category: Optional[str] = None

    name: Optional[str] = None
    price: Optional[Decimal] = None
    currency: Optional[str] = None
    main_image: Optional[str] = None
    images: List[str] = field(default_factory=list)
    rating: Optional[float] = None
    review_count: Optional[int] = None
    availability: str = AVAILABILITY_UNKNOWN

    # Detailed mode only
    description: Optional[str] = None
    measurements: Optional[str] = None
    type: Optional[str] = None
    features: Optional[List[str]] = None

    # Set when the record is finalized for persistence
    retrieved_at: Optional[datetime] = None

    # Provenance, not part of the output record
    extracted_by: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        if not self.id:
            raise DataContractError("CanonicalProduct.id must be non-empty")
        if (self.price is None) != (self.currency is None):
            raise DataContractError("price and currency must be set or unset together")
        object.__setattr__(self, "images", unique(self.images))
        if self.features is not None:
            object.__setattr__(self, "features", unique(self.features, MAX_FEATURES))

    def quality_issues(self) -> List[str]:
        """Data-quality flags for values passed through as extracted."""
        issues = []
        if self.rating is not None and not 0.0 <= self.rating <= 5.0:
            issues.append("rating_out_of_range")
        if self.review_count is not None and self.review_count < 0:
            issues.append("negative_review_count")
        return issues

    def finalized(self, when: Optional[datetime] = None) -> "CanonicalProduct":
        """Copy of this record stamped with its retrieval time."""
        return replace(self, retrieved_at=when or datetime.utcnow())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "price": float(self.price) if self.price is not None else None,
            "currency": self.currency,
            "mainImage": self.main_image,
            "images": list(self.images),
            "rating": self.rating,
            "reviewCount": self.review_count,
            "availability": self.availability,
            "description": self.description,
            "measurements": self.measurements,
            "type": self.type,
            "features": list(self.features) if self.features is not None else None,
            "sourceUrl": self.source_url,
            "category": self.category,
            "retrievedAt": self.retrieved_at.isoformat() if self.retrieved_at else None,
        }


@dataclass(frozen=True)
class PendingDetailWork:
    """A listing-derived record waiting for its detail page to be fetched."""
    record: CanonicalProduct
    detail_url: str
    slot: int = 0

    def to_context(self) -> Dict[str, Any]:
        return {"pending": self}
