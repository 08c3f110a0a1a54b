"""
Discovery feed.

Responsibilities:
- Canonical feed item and filter models.
- Page-cursor state with in-flight and stale-response guards.
- Union of owner-scoped and personal-scoped result sets.
"""
