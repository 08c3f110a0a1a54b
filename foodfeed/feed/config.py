from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class FeedConfig:
    page_size: int = int(os.getenv("FEED_PAGE_SIZE", "10"))
    default_radius_km: float = 50.0
    min_radius_km: float = 5.0
    max_radius_km: float = 100.0
    max_session_loaders: int = int(os.getenv("FEED_MAX_SESSION_LOADERS", "1000"))
    session_loader_ttl: float = float(os.getenv("FEED_SESSION_LOADER_TTL", "1800"))  # 30 minutes


DEFAULT_FEED_CONFIG = FeedConfig()
