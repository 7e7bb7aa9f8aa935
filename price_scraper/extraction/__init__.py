"""
Price extraction from article text.
"""

from .extractor import (
    PriceExtractor,
    classify_price_type,
    has_relevant_keywords,
    normalize_price,
    split_sentences,
    variant_pattern,
)
from .rules import PRICE_RULES, PriceRule, inside_change_clause

__all__ = [
    'PriceExtractor',
    'PriceRule',
    'PRICE_RULES',
    'classify_price_type',
    'has_relevant_keywords',
    'inside_change_clause',
    'normalize_price',
    'split_sentences',
    'variant_pattern',
]
