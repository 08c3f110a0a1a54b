"""
Geo helpers for the discovery feed.

Responsibilities:
- Great-circle distance between two coordinates (haversine).
- Human-readable distance labels.
- Category and radius filtering plus distance ranking of feed items.
"""
