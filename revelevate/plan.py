"""Validation and repair of strategic plans returned by the model.

Providers drift on field names, number formats and optional sections, so every
consumer of a plan reads the :class:`StrategicPlan` built here rather than the
raw JSON.
"""
from __future__ import annotations

import logging
import math
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .errors import InvalidPlanError
from .llm import (
    PLACEHOLDER_URIS,
    extract_citations,
    extract_first_json_object,
    extract_response_text,
)
from .models import (
    INSIGHT_TYPES,
    PRIORITIES,
    ConsumerInsight,
    CostProjection,
    Recommendation,
    RecommendedInvestment,
    Source,
    StakeholderRole,
    StrategicPlan,
)
from .numeric import sanitize_number


logger = logging.getLogger(__name__)

LEADING_PLUS_PATTERN = re.compile(r"^\++")

REQUIRED_FIELDS = (
    ("summary", str),
    ("recommendations", list),
    ("projectedProfitability", list),
    ("consumerInsights", list),
)

# Substrings of the category label each role cares about. Matching is
# case-sensitive on the label exactly as the model wrote it.
ROLE_CATEGORY_KEYWORDS: Dict[StakeholderRole, tuple] = {
    StakeholderRole.REVENUE_MANAGER: ("Revenue", "Decisions"),
    StakeholderRole.MARKETING_HEAD: ("Experience", "Revenue"),
    StakeholderRole.OPERATIONS_MANAGER: ("Efficiency", "Investment"),
    StakeholderRole.FINANCE_DIRECTOR: ("Efficiency", "Investment", "Decisions"),
}


def normalize_impact(value: Any) -> str:
    """Give an impact label exactly one leading plus sign ("7%" -> "+7%")."""

    text = "" if value is None else str(value).strip()
    text = LEADING_PLUS_PATTERN.sub("+", text)
    return text if text.startswith("+") else f"+{text}"


def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value).strip()


def _normalize_priority(value: Any) -> str:
    label = _text(value).capitalize()
    return label if label in PRIORITIES else "Medium"


def _normalize_insight_type(value: Any) -> str:
    label = _text(value).lower()
    return INSIGHT_TYPES[1] if label.startswith("non") else INSIGHT_TYPES[0]


def _require_objects(name: str, items: Sequence[Any]) -> None:
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise InvalidPlanError(f"{name}[{idx}] must be an object, got {type(item).__name__}")


def _normalize_recommendation(item: Mapping[str, Any]) -> Recommendation:
    detailed = _text(item.get("detailedAction")) or None
    return Recommendation(
        category=_text(item.get("category"), "General"),
        action=_text(item.get("action")),
        detailed_action=detailed,
        goal=_text(item.get("goal")),
        example=_text(item.get("example")),
        estimated_impact=normalize_impact(item.get("estimatedImpact")),
        priority=_normalize_priority(item.get("priority")),
    )


def _finite_number(value: Any, field: str) -> float:
    number = sanitize_number(value)
    if not math.isfinite(number):
        raise InvalidPlanError(f"Plan field '{field}' must be a finite number, got {value!r}")
    return number


def _normalize_insight(item: Mapping[str, Any]) -> ConsumerInsight:
    score = int(round(_finite_number(item.get("usageScore"), "usageScore")))
    return ConsumerInsight(
        category=_text(item.get("category")),
        usage_score=min(max(score, 0), 100),
        type=_normalize_insight_type(item.get("type")),
    )


def _normalize_investment(value: Any) -> Optional[RecommendedInvestment]:
    if not isinstance(value, dict):
        return None
    return RecommendedInvestment(
        amount=_text(value.get("amount")),
        period=_text(value.get("period")),
        rationale=_text(value.get("rationale")),
    )


def _normalize_cost_projections(value: Any) -> Optional[List[CostProjection]]:
    if not isinstance(value, list):
        return None
    projections = [
        CostProjection(
            month=_text(item.get("month")),
            cost=_finite_number(item.get("cost"), "cost"),
            savings_opportunity=_finite_number(
                item.get("savingsOpportunity"), "savingsOpportunity"
            ),
            impact_on_profit=_text(item.get("impactOnProfit")),
        )
        for item in value
        if isinstance(item, dict)
    ]
    return projections or None


def normalize_sources(value: Any) -> Optional[List[Source]]:
    """Keep sources with a real uri; no renderable source at all means ``None``."""

    if not isinstance(value, list):
        return None

    sources: List[Source] = []
    for item in value:
        if isinstance(item, str):
            title, uri = item, item
        elif isinstance(item, dict):
            uri = _text(item.get("uri") or item.get("url"))
            title = _text(item.get("title")) or uri
        else:
            continue
        uri = uri.strip()
        if uri in PLACEHOLDER_URIS:
            continue
        sources.append(Source(title=title.strip() or "Source", uri=uri))
    return sources or None


def normalize_plan(raw: Any, timeline_months: int) -> StrategicPlan:
    if not isinstance(raw, dict):
        raise InvalidPlanError(f"Plan must be a JSON object, got {type(raw).__name__}")

    for name, expected in REQUIRED_FIELDS:
        if name not in raw:
            raise InvalidPlanError(f"Plan is missing required field '{name}'")
        if not isinstance(raw[name], expected):
            raise InvalidPlanError(
                f"Plan field '{name}' must be {expected.__name__}, "
                f"got {type(raw[name]).__name__}"
            )

    _require_objects("recommendations", raw["recommendations"])
    _require_objects("consumerInsights", raw["consumerInsights"])

    projection = [
        _finite_number(value, "projectedProfitability") for value in raw["projectedProfitability"]
    ]
    if len(projection) != timeline_months:
        logger.warning(
            "Plan projects %d months but %d were requested", len(projection), timeline_months
        )

    return StrategicPlan(
        summary=raw["summary"].strip(),
        recommendations=[_normalize_recommendation(item) for item in raw["recommendations"]],
        projected_profitability=projection,
        consumer_insights=[_normalize_insight(item) for item in raw["consumerInsights"]],
        recommended_investment=_normalize_investment(raw.get("recommendedInvestment")),
        operational_cost_projections=_normalize_cost_projections(
            raw.get("operationalCostProjections")
        ),
        sources=normalize_sources(raw.get("sources")),
    )


def filter_recommendations(
    recommendations: Iterable[Recommendation],
    role: Union[StakeholderRole, str, None],
) -> List[Recommendation]:
    try:
        keywords = ROLE_CATEGORY_KEYWORDS.get(StakeholderRole(role))
    except ValueError:
        keywords = None
    if not keywords:
        return list(recommendations)
    return [
        rec
        for rec in recommendations
        if any(keyword in rec.category for keyword in keywords)
    ]


def parse_plan_response(raw_response: Any, timeline_months: int) -> StrategicPlan:
    """Decode a chat-completions reply into a normalized plan."""

    content = extract_response_text(raw_response)
    parsed = extract_first_json_object(content)
    if parsed is None:
        preview = content.strip()
        if len(preview) > 500:
            preview = preview[:500] + "..."
        raise InvalidPlanError(
            f"LLM response did not contain valid JSON. Received content preview: {preview}"
        )

    citations = extract_citations(raw_response)
    if citations:
        declared = parsed.get("sources") if isinstance(parsed.get("sources"), list) else []
        parsed = {**parsed, "sources": declared + citations}

    return normalize_plan(parsed, timeline_months)
