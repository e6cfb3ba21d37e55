"""
Community event ingestion, cleaning and city resolution pipeline.
"""

__version__ = "1.0.0"
