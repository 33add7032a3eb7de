from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from .models import ConsumerInsight, Recommendation
from .numeric import parse_leading_number


PROFIT_BASELINE = 25.0


@dataclass
class CategoryImpact:
    category: str
    total_impact: float = 0.0
    actions: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ProfitPoint:
    label: str
    target: float
    profit: Optional[float]


def parse_impact(value: str) -> float:
    return parse_leading_number(value)


def aggregate_category_impact(recommendations: Iterable[Recommendation]) -> List[CategoryImpact]:
    """Total estimated impact per category, in order of first appearance."""

    groups: Dict[str, CategoryImpact] = {}
    for rec in recommendations:
        group = groups.setdefault(rec.category, CategoryImpact(category=rec.category))
        group.total_impact += parse_impact(rec.estimated_impact)
        group.actions.append(rec.action)
    return list(groups.values())


def build_profitability_path(
    projected: Sequence[float],
    target_growth: float,
    timeline_months: int,
    baseline: float = PROFIT_BASELINE,
) -> List[ProfitPoint]:
    """Pair the model's monthly projection with a straight-line target.

    The target climbs from ``baseline`` to ``baseline + target_growth`` over the
    requested timeline. Months the projection does not cover get ``profit=None``
    and extra projected months are ignored.
    """

    if timeline_months <= 0:
        raise ValueError(f"timeline_months must be positive, got {timeline_months}")

    step = target_growth / timeline_months
    points = [ProfitPoint(label="Now", target=baseline, profit=baseline)]
    for month in range(1, timeline_months + 1):
        profit = round(float(projected[month - 1]), 2) if month <= len(projected) else None
        points.append(
            ProfitPoint(
                label=f"M{month}",
                target=round(baseline + step * month, 2),
                profit=profit,
            )
        )
    return points


# --- Chart frames ----------------------------------------------------------
def profitability_frame(points: Sequence[ProfitPoint]) -> pd.DataFrame:
    frame = pd.DataFrame(
        {
            "Month": [point.label for point in points],
            "Projected": [point.profit for point in points],
            "Target": [point.target for point in points],
        }
    )
    return frame.set_index("Month")


def category_impact_frame(impacts: Sequence[CategoryImpact]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Category": [impact.category for impact in impacts],
            "Total Impact (%)": [impact.total_impact for impact in impacts],
            "Key Actions": ["; ".join(impact.actions) for impact in impacts],
        }
    )


def consumer_usage_frame(insights: Sequence[ConsumerInsight]) -> pd.DataFrame:
    frame = pd.DataFrame(
        {
            "Service": [insight.category for insight in insights],
            "Usage Score": [insight.usage_score for insight in insights],
            "Type": [insight.type for insight in insights],
        },
        columns=["Service", "Usage Score", "Type"],
    )
    return frame.sort_values("Usage Score", ascending=False, kind="stable").reset_index(drop=True)
