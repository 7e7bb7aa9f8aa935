"""
Commodity Price Archive Scraper

Walks a news archive day by day, visits price-related articles and pulls
commodity price quotes out of the article text.

Stages:
  1. Orchestrator - split the date range across worker processes
  2. Worker       - one browser session per date slice
  3. Walker       - archive page -> relevant articles -> extracted prices
  4. Report       - per-commodity CSVs and a combined JSON
"""

__version__ = "1.0.0"
