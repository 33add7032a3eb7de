from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict

from .errors import NoDataError
from .models import PerformanceSnapshot


GROWTH_RANGE = (0, 50)
TIMELINE_RANGE = (3, 36)

RECOMMENDATION_CATEGORIES = (
    "Revenue Optimization",
    "Operational Efficiency",
    "Guest Experience",
    "Investment",
    "Data-Driven Decisions",
)


@dataclass(frozen=True)
class PlanRequest:
    context: Dict[str, Any]
    target_growth: int
    timeline_months: int

    @property
    def context_text(self) -> str:
        ctx = self.context
        return "\n".join(
            [
                f"Location: {ctx['location']}",
                f"Current Occupancy: {ctx['occupancy_pct']}%",
                f"ADR: ${ctx['adr']}",
                f"RevPAR: ${ctx['rev_par']}",
                f"Direct Bookings: {ctx['direct_pct']}%",
                f"OTA Bookings: {ctx['ota_pct']}%",
                f"Current Profit Margin: {ctx['profit_margin_pct']}%",
                f"Transactions Analysed: {ctx['transactions']}",
                f"Average Service Rating: {ctx['avg_service_rating']}/5",
                f"Hospitality Add-on Usage: {ctx['hosp_addon_pct']}% "
                f"(rating {ctx['hosp_addon_rating']}/5)",
                f"Non-Hospitality Add-on Usage: {ctx['non_hosp_addon_pct']}% "
                f"(rating {ctx['non_hosp_addon_rating']}/5)",
                f"Data Source: {ctx['source']}",
            ]
        )


def _check_goal(name: str, value: int, bounds: tuple) -> int:
    low, high = bounds
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if not low <= value <= high:
        raise ValueError(f"{name} must be between {low} and {high}, got {value}")
    return value


def build_plan_request(
    snapshot: PerformanceSnapshot,
    target_growth: int,
    timeline_months: int,
    location: str,
) -> PlanRequest:
    if snapshot.is_default:
        raise NoDataError("A plan was requested before any ledger was processed.")

    _check_goal("target_growth", target_growth, GROWTH_RANGE)
    _check_goal("timeline_months", timeline_months, TIMELINE_RANGE)

    extra = snapshot.extra_metrics
    context = {
        "location": location.strip() or "Unspecified",
        "occupancy_pct": snapshot.occ_rate,
        "adr": snapshot.adr,
        "rev_par": f"{snapshot.rev_par:.2f}",
        "direct_pct": snapshot.direct,
        "ota_pct": snapshot.ota,
        "profit_margin_pct": snapshot.profit_margin,
        "transactions": snapshot.transactions,
        "avg_service_rating": extra.avg_service_rating,
        "hosp_addon_pct": extra.hosp_addon_pct,
        "non_hosp_addon_pct": extra.non_hosp_addon_pct,
        "hosp_addon_rating": extra.hosp_addon_rating,
        "non_hosp_addon_rating": extra.non_hosp_addon_rating,
        "source": f"Uploaded ledger ({snapshot.source}), synced {snapshot.last_sync}",
    }
    return PlanRequest(
        context=context,
        target_growth=target_growth,
        timeline_months=timeline_months,
    )


PLAN_SYSTEM_PROMPT = """
You are a world-class hospitality consultant and AI revenue engine. Analyse the
hotel's performance data, search for current local market conditions where you
can, and produce a strategic profitability plan. Respond in JSON with the structure:
{
  "summary": str,
  "recommendations": [
    {"category": str, "action": str, "detailedAction": str, "goal": str,
     "example": str, "estimatedImpact": str, "priority": "High" | "Medium" | "Low"}
  ],
  "projectedProfitability": [number],
  "consumerInsights": [
    {"category": str, "usageScore": int, "type": "Hospitality" | "Non-Hospitality"}
  ],
  "recommendedInvestment": {"amount": str, "period": str, "rationale": str},
  "operationalCostProjections": [
    {"month": str, "cost": number, "savingsOpportunity": number, "impactOnProfit": str}
  ],
  "sources": [{"title": str, "uri": str}]
}
"""


def build_user_message(request: PlanRequest) -> str:
    months = request.timeline_months
    payload = {
        "goal": (
            f"Increase profitability by {request.target_growth}% "
            f"within {months} months."
        ),
        "current_context": request.context_text,
        "metrics": request.context,
        "requirements": [
            "Group recommendations into these categories: "
            + ", ".join(RECOMMENDATION_CATEGORIES)
            + ".",
            "Give every recommendation an action, goal, example, estimatedImpact and priority.",
            f"projectedProfitability must hold exactly {months} monthly profit-margin values.",
            "List 5-6 consumer usage/demand insights (e.g. F&B, Spa, Business Center, "
            "External Laundry, Local Tours) with a usageScore from 0 to 100, each tagged "
            "Hospitality or Non-Hospitality.",
            "Cite any real-time market data in sources.",
        ],
    }
    return json.dumps(payload, indent=2)


def build_plan_payload(
    request: PlanRequest, model: str, temperature: float, max_tokens: int
) -> Dict[str, Any]:
    return {
        "model": model,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "messages": [
            {"role": "system", "content": PLAN_SYSTEM_PROMPT.strip()},
            {"role": "user", "content": build_user_message(request)},
        ],
    }
