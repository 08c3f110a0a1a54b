"""
Restaurant discovery.

Responsibilities:
- Canonical restaurant model with its published videos.
- Text, category and distance search over active restaurants.
- Detail view combining badges and favorite counts.
"""
