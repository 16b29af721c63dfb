"""
KaptWatch - K-apt procurement notice tracker.

Scrapes the K-apt apartment bid listing into a deduplicated snapshot and
keeps a curated selection of notices consistent across synchronizations.
"""

__version__ = "0.1.0"
__app_name__ = "kaptwatch"
