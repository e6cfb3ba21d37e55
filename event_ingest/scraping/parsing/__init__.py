"""
Markup-specific page extractors.
"""

from event_ingest.scraping.parsing.listing_parser import ListingPageExtractor

__all__ = ["ListingPageExtractor"]
