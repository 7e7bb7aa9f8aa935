"""
Commodity price extraction from free-form article text.

Sentence-level matching:
    1. Split into sentences
    2. Keep sentences that mention a commodity variant (word-boundary match)
    3. Run the price rule table over those sentences
    4. Deduplicate by normalized price, classify Retail/Wholesale
    5. If nothing was found, look at the neighbouring sentences instead
       (reduced confidence)

This is a heuristic: wrong attribution and missed prices both happen.
"""

import re
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..config import PRICE_KEYWORDS, PRODUCT_VARIANTS
from ..models import PriceMatch, PriceType
from .rules import PRICE_RULES, PriceRule


SENTENCE_SPLIT_RE = re.compile(r'(?<=[.!?।])\s+')
WHOLESALE_RE = re.compile(r'wholesale|bulk|পাইকারি', re.IGNORECASE)

# Word characters for boundary purposes; Bengali vowel signs are not \w
WORD_CHARS = r"\w\u0980-\u09FF"


@lru_cache(maxsize=512)
def variant_pattern(variant: str) -> re.Pattern:
    """Compile a case-insensitive whole-word pattern for a variant."""
    return re.compile(
        rf'(?<![{WORD_CHARS}]){re.escape(variant)}(?![{WORD_CHARS}])',
        re.IGNORECASE,
    )


def split_sentences(text: str) -> List[str]:
    return [s for s in SENTENCE_SPLIT_RE.split(text) if s.strip()]


def normalize_price(price: str) -> str:
    return ' '.join(price.split()).lower()


def classify_price_type(context: str) -> PriceType:
    if WHOLESALE_RE.search(context):
        return PriceType.WHOLESALE
    return PriceType.RETAIL


def has_relevant_keywords(title: str, keywords: Sequence[str] = PRICE_KEYWORDS) -> bool:
    """Case-insensitive substring check of an article title."""
    lower_title = title.lower()
    return any(keyword.lower() in lower_title for keyword in keywords)


class PriceExtractor:
    """
    Extracts PriceMatch fragments for tracked commodities.

    Args:
        variants: canonical commodity name -> surface forms
        rules: ordered price rules (see rules.PRICE_RULES)
    """

    def __init__(
        self,
        variants: Dict[str, List[str]] = PRODUCT_VARIANTS,
        rules: Sequence[PriceRule] = PRICE_RULES,
    ):
        self.variants = variants
        self.rules = list(rules)

    def variants_for(self, commodity: str) -> List[str]:
        return self.variants.get(commodity) or [commodity.lower()]

    def mentioned_variant(self, sentence: str, commodity: str) -> Optional[str]:
        """Return the first variant of `commodity` found in `sentence`."""
        for variant in self.variants_for(commodity):
            if variant_pattern(variant).search(sentence):
                return variant
        return None

    def mentions_other_commodity(self, sentence: str, commodity: str) -> bool:
        return any(
            self.mentioned_variant(sentence, other)
            for other in self.variants
            if other != commodity
        )

    def find_commodity_matches(self, text: str, commodities: Iterable[str]) -> List[str]:
        """Commodities (in the given order) mentioned anywhere in the text."""
        found = []
        for commodity in commodities:
            if commodity not in found and self.mentioned_variant(text, commodity):
                found.append(commodity)
        return found

    def scan_sentence(self, sentence: str) -> List[str]:
        """
        Run every rule over one sentence.

        Returns price strings in discovery order. Matches overlapping a
        span already claimed by an earlier rule are skipped, as are matches
        the rule's exclusion predicate rejects.
        """
        claimed: List[Tuple[int, int]] = []
        prices = []
        for rule in self.rules:
            for match in rule.pattern.finditer(sentence):
                start, end = match.span(1)
                if any(start < c_end and c_start < end for c_start, c_end in claimed):
                    continue
                if rule.excludes(sentence, start):
                    continue
                claimed.append((start, end))
                prices.append(match.group(1).strip())
        return prices

    def extract_prices(self, text: str, commodity: str) -> List[PriceMatch]:
        """All distinct prices quoted for one commodity in an article."""
        sentences = split_sentences(text)
        seen: Set[str] = set()
        results: List[PriceMatch] = []
        commodity_indices = []

        for index, sentence in enumerate(sentences):
            variant = self.mentioned_variant(sentence, commodity)
            if not variant:
                continue
            commodity_indices.append(index)
            self._collect(sentence, commodity, variant, 'high', seen, results)

        if results:
            return results

        # Nothing next to the commodity name itself: try adjacent sentences
        for index in commodity_indices:
            for neighbour in (index - 1, index + 1):
                if neighbour < 0 or neighbour >= len(sentences) or neighbour in commodity_indices:
                    continue
                sentence = sentences[neighbour]
                if self.mentions_other_commodity(sentence, commodity):
                    continue
                self._collect(sentence, commodity, f'[Nearby] {commodity}', 'medium', seen, results)

        return results

    def extract(self, text: str, commodities: Iterable[str]) -> List[PriceMatch]:
        """Extract prices for every listed commodity the text mentions."""
        matches = []
        for commodity in self.find_commodity_matches(text, commodities):
            matches.extend(self.extract_prices(text, commodity))
        return matches

    def _collect(self, sentence, commodity, variant, confidence, seen, results):
        for price in self.scan_sentence(sentence):
            key = normalize_price(price)
            if key in seen:
                continue
            seen.add(key)
            results.append(PriceMatch(
                commodity=commodity,
                price=price,
                price_type=classify_price_type(sentence),
                context=sentence.strip(),
                variant=variant,
                confidence=confidence,
            ))
