"""Meeting-count performance scoring for ESS staff."""

from __future__ import annotations

from typing import Any, Iterable

# (low, high, score); the first band containing the count wins.
ONLINE_BANDS = (
    (30, 40, 4.0),
    (27, 29, 3.0),
    (24, 26, 2.2),
    (21, 23, 1.4),
    (18, 20, 0.8),
)

# Both bands contain 8; evaluation order gives it the higher score.
OFFLINE_BANDS = (
    (8, None, 4.0),
    (5, 8, 2.0),
)

PERCENTAGE_PER_POINT = 0.05


def _as_count(value: Any) -> float:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    try:
        return float(str(value).strip())
    except ValueError:
        return 0


def _band_score(count: float, bands: Iterable[tuple]) -> float:
    for low, high, score in bands:
        if count >= low and (high is None or count <= high):
            return score
    return 0.0


def calculate_online_score(count: Any) -> float:
    return _band_score(_as_count(count), ONLINE_BANDS)


def calculate_offline_score(count: Any) -> float:
    return _band_score(_as_count(count), OFFLINE_BANDS)


def format_percentage(value: float) -> str:
    return f"{value * 100:.1f}%"


def score_performance(offline_count: Any, online_count: Any) -> dict[str, Any]:
    offline_score = calculate_offline_score(offline_count)
    online_score = calculate_online_score(online_count)
    total_score = round(offline_score + online_score, 4)
    performance = round(total_score * PERCENTAGE_PER_POINT, 6)
    return {
        "offline_score": offline_score,
        "online_score": online_score,
        "total_score": total_score,
        "performance_percentage": performance,
        "formatted_percentage": format_percentage(performance),
    }


def score_team(ranking: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Score every ranked person and order by performance, highest first."""
    scored = [
        {**entry, **score_performance(entry.get("offline_yes", 0), entry.get("online_no", 0))}
        for entry in ranking
    ]
    return sorted(scored, key=lambda entry: entry["performance_percentage"], reverse=True)
