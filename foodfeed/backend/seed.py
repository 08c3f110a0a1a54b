from __future__ import annotations

from pathlib import Path
from typing import Any

import pandas as pd

SEED_DIR = Path(__file__).resolve().parent.parent / "data" / "seed"

# table -> (integer columns, float columns, boolean columns)
_TABLES: dict[str, tuple[list[str], list[str], list[str]]] = {
    "profiles": ([], [], []),
    "restaurants": (["review_count"], ["latitude", "longitude", "rating"], ["is_active"]),
    "videos": (["likes_count", "comments_count", "views_count"], [], []),
    "bookings": (["party_size"], [], []),
    "comments": (["depth"], [], []),
    "reviews": (["rating"], [], []),
    "notifications": ([], [], ["read"]),
    "user_badges": ([], [], []),
    "restaurant_badges": ([], [], []),
}


def _load_table(
    path: Path,
    integer: list[str],
    floating: list[str],
    boolean: list[str],
) -> list[dict[str, Any]]:
    df = pd.read_csv(path, dtype=str, keep_default_na=False, na_values=[""])

    for col in integer + floating:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    for col in boolean:
        if col in df.columns:
            df[col] = df[col].fillna("false").str.strip().str.lower().isin(["true", "1", "yes"])

    records: list[dict[str, Any]] = []
    for raw in df.to_dict(orient="records"):
        record: dict[str, Any] = {}
        for col, value in raw.items():
            # NaN -> None so missing coordinates stay "unknown" downstream
            if value is None or (not isinstance(value, str) and pd.isna(value)):
                record[col] = None
            elif col in integer:
                record[col] = int(value)
            elif col in floating:
                record[col] = float(value)
            elif col in boolean:
                record[col] = bool(value)
            else:
                record[col] = value
        records.append(record)
    return records


def load_seed(seed_dir: Path = SEED_DIR) -> dict[str, list[dict[str, Any]]]:
    """Read every bundled seed table that exists under ``seed_dir``."""
    tables: dict[str, list[dict[str, Any]]] = {}
    for table, (integer, floating, boolean) in _TABLES.items():
        path = seed_dir / f"{table}.csv"
        tables[table] = _load_table(path, integer, floating, boolean) if path.exists() else []
    return tables
