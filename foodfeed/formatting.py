from __future__ import annotations

_UNITS = ((1_000_000_000, "B"), (1_000_000, "M"), (1_000, "K"))


def format_count(num: int) -> str:
    """``999``, ``1K``, ``1.5K``, ``2M``, ``1.1B``."""
    if num < 1000:
        return str(num)
    for size, suffix in _UNITS:
        if num >= size:
            scaled = num / size
            if scaled % 1 == 0:
                return f"{scaled:.0f}{suffix}"
            return f"{scaled:.1f}{suffix}"
    return str(num)


def format_view_count(views: int) -> str:
    if views == 0:
        return "0"
    if views == 1:
        return "1 view"
    return f"{format_count(views)} views"
