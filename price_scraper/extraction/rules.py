"""
Price pattern rules.

Each rule pairs a pattern (group 1 is the quoted price) with an exclusion
predicate. Rules are evaluated in order; a span claimed by an earlier rule
is not reported again by a later one.
"""

import re
from dataclasses import dataclass
from typing import Callable, List


CURRENCY = r'(?<![A-Za-z])(?:Tk\.?|Taka|৳)'
AMOUNT = r'\d[\d,]*(?:\.\d+)?'
RANGE_SEP = r'(?:-|–|to|থেকে)'
PER = r'(?:per|an|a|each|/|প্রতি)'
UNIT = (
    r'(?:kilograms?|kilos?|kg|কেজি|litres?|liters?|l|লিটার'
    r'|pieces?|pcs|units?|hali|হালি|apiece|dozen)(?![A-Za-z])'
)

# "Tk 120 per kg", "Tk 110-120 a kg", "৳ 50 প্রতি কেজি"
PRICE_WITH_OPTIONAL_PER = rf'{CURRENCY}\s*{AMOUNT}(?:\s*{RANGE_SEP}\s*{AMOUNT})?\s*(?:{PER}\s*)?{UNIT}'
PRICE_WITH_PER = rf'{CURRENCY}\s*{AMOUNT}(?:\s*{RANGE_SEP}\s*{AMOUNT})?\s*{PER}\s*{UNIT}'

# Phrases describing a change in price rather than a level
CHANGE_BY_RE = re.compile(
    r'\b(?:increased|rose|risen|up|higher|hiked|jumped|climbed'
    r'|decreased|fell|fallen|dropped|down|lower|declined)\s+by\b',
    re.IGNORECASE,
)
# Where a "rose by X" clause stops: "... to Tk 120", "... from Tk 110", ", ..."
CLAUSE_END_RE = re.compile(r'\b(?:to|from)\b|[,;]\s|$', re.IGNORECASE)


def inside_change_clause(sentence: str, start: int) -> bool:
    """
    True if the match at `start` is the amount of a change ("rose by Tk 5"),
    not a quoted price level.

    "rose by Tk 10 per kg to Tk 120 per kg" -> Tk 10 is inside, Tk 120 is not.
    """
    for change in CHANGE_BY_RE.finditer(sentence):
        if start < change.end():
            continue
        clause_end = CLAUSE_END_RE.search(sentence, change.end())
        end = clause_end.start() if clause_end else len(sentence)
        if start < end:
            return True
    return False


def never_excluded(sentence: str, start: int) -> bool:
    return False


@dataclass(frozen=True)
class PriceRule:
    name: str
    pattern: re.Pattern
    exclusion: Callable[[str, int], bool] = inside_change_clause

    def excludes(self, sentence: str, start: int) -> bool:
        return self.exclusion(sentence, start)


def _rule(name: str, regex: str) -> PriceRule:
    return PriceRule(name=name, pattern=re.compile(regex, re.IGNORECASE))


PRICE_RULES: List[PriceRule] = [
    # "sold for Tk 120 per kg" - the most reliable current-price phrasing
    _rule('sold_for', rf'sold\s+for\s+({PRICE_WITH_OPTIONAL_PER})'),
    # "retailed at Tk 110-120 per kg", "priced at", "costs Tk ..."
    _rule('quoted_at',
          rf'(?:retail(?:ed|s)?|pric(?:e|ed|es)|cost(?:s|ed)?)\s+(?:at|for|of)\s+({PRICE_WITH_OPTIONAL_PER})'),
    # "at Tk 50 per piece"
    _rule('at_price', rf'\bat\s+({PRICE_WITH_OPTIONAL_PER})'),
    # "120 taka per kg"
    _rule('amount_in_taka',
          rf'(?<![\d,.])({AMOUNT}\s*(?:taka|tk|টাকা)\s*{PER}\s*{UNIT})'),
    # Bare "Tk 120 per kg" (unit marker required to stay specific)
    _rule('bare_price', rf'({PRICE_WITH_PER})'),
]
