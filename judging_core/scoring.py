"""Score aggregation: weighted totals per breakdown, summaries per entry, leaderboard.

N/A attributes (None values) are left out of both the weighted sum and the
weight total, so marking a section N/A never drags an entry's score down.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

from .config import ContestConfig
from .models import Contest
from .templates import DEFAULT_TEMPLATE_KEY, get_effective_config


def _numeric(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def calculate_weighted_total(
    breakdown: Mapping[str, Optional[float]], config: ContestConfig
) -> float:
    """Weighted average of the numeric attribute values (0 when nothing is scored)."""
    total = 0.0
    weight_sum = 0.0
    for attr in config.attributes:
        value = breakdown.get(attr.id)
        if not _numeric(value):
            continue
        total += value * attr.weight
        weight_sum += attr.weight
    return total / weight_sum if weight_sum > 0 else 0.0


def calculate_score(
    breakdown: Mapping[str, Optional[float]], config: ContestConfig | None = None
) -> float:
    """Single score for a breakdown: a positive ``overall`` wins, else the plain mean."""
    overall = breakdown.get("overall")
    if _numeric(overall) and overall > 0:
        return float(overall)
    keys = [attr.id for attr in config.attributes] if config else list(breakdown)
    values = [breakdown[key] for key in keys if _numeric(breakdown.get(key))]
    if not values:
        return 0.0
    return sum(values) / len(values)


@dataclass(frozen=True)
class EntrySummary:
    entry_id: str
    vote_count: int
    mean_score: float
    # attribute id -> mean over voters who scored it (None when nobody did)
    attribute_means: Dict[str, Optional[float]]


@dataclass(frozen=True)
class LeaderboardRow:
    entry_id: str
    entry_name: str
    rank: int
    mean_score: float
    vote_count: int


def summarize_entry(
    contest: Contest, entry_id: str, default_template: str = DEFAULT_TEMPLATE_KEY
) -> EntrySummary:
    config = get_effective_config(contest, default_template)
    scores = [s for s in contest.scores if s.entryId == entry_id]

    totals = [calculate_weighted_total(s.breakdown, config) for s in scores]
    attribute_means: Dict[str, Optional[float]] = {}
    for attr in config.attributes:
        values = [s.breakdown[attr.id] for s in scores if _numeric(s.breakdown.get(attr.id))]
        attribute_means[attr.id] = sum(values) / len(values) if values else None

    return EntrySummary(
        entry_id=entry_id,
        vote_count=len(scores),
        mean_score=sum(totals) / len(totals) if totals else 0.0,
        attribute_means=attribute_means,
    )


def rank_entries(
    contest: Contest, default_template: str = DEFAULT_TEMPLATE_KEY
) -> Tuple[LeaderboardRow, ...]:
    """Entries ordered by mean weighted score; equal scores share a rank."""
    summaries = [
        (entry, summarize_entry(contest, entry.id, default_template)) for entry in contest.entries
    ]
    summaries.sort(key=lambda item: (-item[1].mean_score, item[0].name.lower(), item[0].id))

    rows = []
    prev_score: float | None = None
    rank = 0
    for position, (entry, summary) in enumerate(summaries, start=1):
        if prev_score is None or not math.isclose(summary.mean_score, prev_score):
            rank = position
            prev_score = summary.mean_score
        rows.append(
            LeaderboardRow(
                entry_id=entry.id,
                entry_name=entry.name,
                rank=rank,
                mean_score=summary.mean_score,
                vote_count=summary.vote_count,
            )
        )
    return tuple(rows)
