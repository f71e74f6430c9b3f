"""Domain-based target grouping, time range presets and duration formatting."""

import re
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta, timezone

# (value, label, hours)
TIME_RANGE_PRESETS = [
    ("1h", "Last 1 Hour", 1),
    ("6h", "Last 6 Hours", 6),
    ("12h", "Last 12 Hours", 12),
    ("2d", "Last 2 Days", 48),
    ("7d", "Last 7 Days", 168),
    ("4w", "Last 4 Weeks", 672),
    ("3m", "Last 3 Months", 2160),
]


def primary_domain(target: str) -> str:
    """Host part of a target: no scheme, path, port, query or fragment."""
    if not target:
        return ""
    host = re.sub(r"^https?://", "", target)
    for sep in ("/", ":", "?", "#"):
        host = host.split(sep)[0]
    return host


def root_domain(target: str) -> str:
    host = primary_domain(target)
    parts = host.split(".")
    if len(parts) <= 2:
        return host
    return ".".join(parts[-2:])


def group_by_root_domain(targets: Iterable[str]) -> dict[str, list[str]]:
    groups: dict[str, list[str]] = {}
    for target in targets:
        members = groups.setdefault(root_domain(target), [])
        if target not in members:
            members.append(target)
    return groups


def build_groups(targets: Iterable[str], custom_groups: Mapping[str, list[str]] | None = None) -> dict[str, list[str]]:
    """Custom groups first, then every remaining target under its root domain."""
    custom_groups = custom_groups or {}
    result = {name: list(members) for name, members in custom_groups.items()}
    used = {t for members in custom_groups.values() for t in members}

    for root, members in group_by_root_domain(targets).items():
        unused = [t for t in members if t not in used]
        if unused and root not in result:
            result[root] = unused
    return result


def range_from_preset(value: str, now: datetime | None = None) -> tuple[datetime, datetime]:
    for preset, _, hours in TIME_RANGE_PRESETS:
        if preset == value:
            end = now or datetime.now(timezone.utc)
            return end - timedelta(hours=hours), end
    raise KeyError(f"Unknown time range preset: {value}")


def format_duration(delta: timedelta) -> str:
    seconds = int(delta.total_seconds())
    if seconds <= 0:
        return "0s"
    minutes, hours, days = seconds // 60, seconds // 3600, seconds // 86400
    if days:
        return f"{days}d {hours % 24}h {minutes % 60}m"
    if hours:
        return f"{hours}h {minutes % 60}m"
    if minutes:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"
