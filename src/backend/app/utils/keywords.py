"""
Keyword tables used to classify receipts.

The category taxonomy and vendor hints are configuration: they can be
replaced with a JSON file without touching the extraction code.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

logger = logging.getLogger(__name__)


DEFAULT_CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    'Travel': ['taxi', 'uber', 'lyft', 'flight', 'train', 'bus', 'metro', 'transport'],
    'Meals': ['restaurant', 'cafe', 'food', 'dining', 'lunch', 'dinner', 'breakfast'],
    'Accommodation': ['hotel', 'motel', 'bnb', 'accommodation', 'lodging'],
    'Office Supplies': ['office', 'supplies', 'stationery', 'paper', 'pen', 'pencil'],
    'Software': ['software', 'app', 'subscription', 'license', 'saas'],
    'Training': ['training', 'course', 'education', 'learning', 'workshop'],
    'Marketing': ['marketing', 'advertising', 'promotion', 'campaign'],
    'Entertainment': ['movie', 'theater', 'concert', 'entertainment', 'game'],
}

DEFAULT_VENDOR_KEYWORDS: List[str] = [
    'restaurant', 'hotel', 'store', 'shop', 'cafe', 'bar', 'market', 'gas', 'station'
]


@dataclass(frozen=True)
class CategoryRules:
    """
    Ordered category → keyword mapping plus vendor keywords.

    Category order matters: the first category with a matching keyword wins.
    Keywords are stored lowercased.
    """
    categories: Dict[str, List[str]] = field(default_factory=dict)
    vendor_keywords: List[str] = field(default_factory=list)

    def __post_init__(self):
        object.__setattr__(self, 'categories', {
            name: [kw.lower() for kw in keywords if kw]
            for name, keywords in self.categories.items()
        })
        object.__setattr__(self, 'vendor_keywords', [kw.lower() for kw in self.vendor_keywords if kw])

    @classmethod
    def default(cls) -> "CategoryRules":
        return cls(
            categories={name: list(kws) for name, kws in DEFAULT_CATEGORY_KEYWORDS.items()},
            vendor_keywords=list(DEFAULT_VENDOR_KEYWORDS),
        )

    def classify(self, text: str) -> str:
        """Return the first category whose keyword occurs in text, or ''."""
        text_lower = (text or "").lower()
        for category, keywords in self.categories.items():
            if any(keyword in text_lower for keyword in keywords):
                return category
        return ""

    def has_vendor_keyword(self, line: str) -> bool:
        line_lower = line.lower()
        return any(keyword in line_lower for keyword in self.vendor_keywords)


def load_rules(path: Optional[Union[str, Path]]) -> CategoryRules:
    """
    Load keyword rules from a JSON file.

    Expected format:
        {
          "categories": {"Travel": ["taxi", "uber"], "Meals": ["cafe"]},
          "vendor_keywords": ["restaurant", "hotel"]
        }

    A missing file, or a missing key within it, falls back to the defaults.
    """
    defaults = CategoryRules.default()
    if not path:
        return defaults

    path = Path(path)
    if not path.exists():
        logger.info("Keyword rules file not found, using defaults", extra={"path": str(path)})
        return defaults

    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"Keyword rules must be a JSON object: {path}")

    categories = raw.get("categories", defaults.categories)
    vendor_keywords = raw.get("vendor_keywords", defaults.vendor_keywords)

    if not isinstance(categories, dict) or not all(isinstance(v, list) for v in categories.values()):
        raise ValueError(f"'categories' must map category names to keyword lists: {path}")
    if not isinstance(vendor_keywords, list):
        raise ValueError(f"'vendor_keywords' must be a list: {path}")

    logger.debug("Loaded keyword rules", extra={"path": str(path), "categories": len(categories)})
    return CategoryRules(categories=categories, vendor_keywords=vendor_keywords)
