"""
Maps POS product categories onto the product_categories reference table
and detects products that are restricted from barter payment.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from db_models import ProductCategory
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = "other"

# Checked in this order; the first keyword found wins
RESTRICTED_KEYWORDS: List[Tuple[str, List[str]]] = [
    ("alcohol", ["alcohol", "beer", "wine", "liquor", "spirits", "vodka", "whiskey", "rum",
                 "tequila", "champagne", "cocktail", "alcoholic"]),
    ("tobacco", ["tobacco", "cigarette", "cigar", "vape", "vaping", "e-cig", "nicotine", "smoking"]),
    ("lottery", ["lottery", "scratch", "powerball", "mega millions", "lotto", "raffle"]),
    ("gift-cards", ["gift card", "giftcard", "prepaid card", "store credit"]),
    ("pharmacy", ["prescription", "rx", "medication", "drug", "pharmaceutical", "controlled substance"]),
    ("firearms", ["firearm", "gun", "ammunition", "ammo", "weapon", "rifle", "pistol"]),
]


@dataclass(frozen=True)
class RestrictionMatch:
    category_slug: str
    keyword: str

    @property
    def reason(self) -> str:
        return f'Contains restricted keyword: "{self.keyword}"'


@dataclass(frozen=True)
class CategoryMapping:
    category_id: int
    is_restricted: bool
    matched_label: str
    restriction_reason: Optional[str] = None


def detect_restricted_product(
    product_name: Optional[str],
    product_description: Optional[str] = None,
    category_name: Optional[str] = None
) -> Optional[RestrictionMatch]:
    """Search name, description and category for a restricted keyword"""
    search_text = " ".join(
        part for part in (product_name, product_description, category_name) if part
    ).lower()

    for category_slug, keywords in RESTRICTED_KEYWORDS:
        for keyword in keywords:
            if keyword in search_text:
                return RestrictionMatch(category_slug=category_slug, keyword=keyword)

    return None


class CategoryMapper:
    """Resolves canonical categories. Lookups are memoized per instance."""

    def __init__(self, db: Session):
        self.db = db
        self._lookup_cache: Dict[str, Optional[int]] = {}

    def get_category_id(self, category_name: Optional[str]) -> Optional[int]:
        """Case-insensitive match on category name or slug"""
        if not category_name or not category_name.strip():
            return None

        normalized = category_name.strip().lower()
        if normalized in self._lookup_cache:
            return self._lookup_cache[normalized]

        row = self.db.query(ProductCategory.id).filter(
            or_(
                func.lower(ProductCategory.name) == normalized,
                ProductCategory.slug == normalized
            )
        ).order_by(ProductCategory.id).first()

        category_id = row[0] if row else None
        self._lookup_cache[normalized] = category_id
        return category_id

    def map(
        self,
        category_name: Optional[str],
        product_name: Optional[str],
        product_description: Optional[str] = None
    ) -> CategoryMapping:
        """
        Map a POS category to a reference category.

        Restricted keyword detection runs first and overrides whatever
        category the provider supplied. Otherwise the provider category is
        looked up by name or slug, falling back to 'other'.

        Raises:
            ConfigurationError: the 'other' reference row is missing
        """
        restriction = detect_restricted_product(product_name, product_description, category_name)

        category_id = None
        matched_label = None

        if restriction:
            category_id = self.get_category_id(restriction.category_slug)
            matched_label = restriction.category_slug
        elif category_name:
            category_id = self.get_category_id(category_name)
            matched_label = category_name

        if not category_id:
            category_id = self.get_category_id(FALLBACK_CATEGORY)
            matched_label = FALLBACK_CATEGORY

        if not category_id:
            raise ConfigurationError("Reference category 'other' is missing")

        return CategoryMapping(
            category_id=category_id,
            is_restricted=restriction is not None,
            matched_label=matched_label,
            restriction_reason=restriction.reason if restriction else None
        )
