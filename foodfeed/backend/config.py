from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class BackendConfig:
    supabase_url: str = os.getenv("SUPABASE_URL", "").rstrip("/")
    supabase_anon_key: str = os.getenv("SUPABASE_ANON_KEY", "")
    timeout: float = 10.0
    connect_timeout: float = 5.0
    media_bucket: str = os.getenv("MEDIA_BUCKET", "media")
    max_upload_bytes: int = 50 * 1024 * 1024

    @property
    def enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)


DEFAULT_BACKEND_CONFIG = BackendConfig()
