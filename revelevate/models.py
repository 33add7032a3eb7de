from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


NO_DATA_SOURCE = "No Data Uploaded"


class StakeholderRole(str, Enum):
    GENERAL_MANAGER = "General Manager"
    REVENUE_MANAGER = "Revenue Manager"
    MARKETING_HEAD = "Marketing Head"
    OPERATIONS_MANAGER = "Operations Manager"
    FINANCE_DIRECTOR = "Finance Director"


PRIORITIES = ("High", "Medium", "Low")
INSIGHT_TYPES = ("Hospitality", "Non-Hospitality")


# --- Ledger snapshot -------------------------------------------------------
@dataclass(frozen=True)
class ExtraMetrics:
    avg_service_rating: float = 0.0
    hosp_addon_pct: int = 0
    non_hosp_addon_pct: int = 0
    hosp_addon_rating: float = 0.0
    non_hosp_addon_rating: float = 0.0


@dataclass(frozen=True)
class PerformanceSnapshot:
    profit_margin: float
    transactions: int
    occ_rate: int
    adr: int
    direct: int
    ota: int
    extra_metrics: ExtraMetrics
    last_sync: str
    source: str
    is_default: bool = False

    @classmethod
    def default(cls) -> "PerformanceSnapshot":
        """The placeholder shown before any ledger has been processed."""

        return cls(
            profit_margin=0.0,
            transactions=0,
            occ_rate=0,
            adr=0,
            direct=0,
            ota=0,
            extra_metrics=ExtraMetrics(),
            last_sync="",
            source=NO_DATA_SOURCE,
            is_default=True,
        )

    @property
    def rev_par(self) -> float:
        return self.adr * self.occ_rate / 100

    def to_dict(self) -> Dict[str, Any]:
        extra = self.extra_metrics
        return {
            "profitMargin": self.profit_margin,
            "transactions": self.transactions,
            "occRate": self.occ_rate,
            "adr": self.adr,
            "direct": self.direct,
            "ota": self.ota,
            "extraMetrics": {
                "avgServiceRating": extra.avg_service_rating,
                "hospAddonPct": extra.hosp_addon_pct,
                "nonHospAddonPct": extra.non_hosp_addon_pct,
                "hospAddonRating": extra.hosp_addon_rating,
                "nonHospAddonRating": extra.non_hosp_addon_rating,
            },
            "lastSync": self.last_sync,
            "source": self.source,
            "isDefault": self.is_default,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PerformanceSnapshot":
        extra = data.get("extraMetrics") or {}
        return cls(
            profit_margin=float(data.get("profitMargin", 0.0)),
            transactions=int(data.get("transactions", 0)),
            occ_rate=int(data.get("occRate", 0)),
            adr=int(data.get("adr", 0)),
            direct=int(data.get("direct", 0)),
            ota=int(data.get("ota", 0)),
            extra_metrics=ExtraMetrics(
                avg_service_rating=float(extra.get("avgServiceRating", 0.0)),
                hosp_addon_pct=int(extra.get("hospAddonPct", 0)),
                non_hosp_addon_pct=int(extra.get("nonHospAddonPct", 0)),
                hosp_addon_rating=float(extra.get("hospAddonRating", 0.0)),
                non_hosp_addon_rating=float(extra.get("nonHospAddonRating", 0.0)),
            ),
            last_sync=str(data.get("lastSync", "")),
            source=str(data.get("source", NO_DATA_SOURCE)),
            is_default=bool(data.get("isDefault", False)),
        )


def sync_timestamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")


# --- Strategic plan --------------------------------------------------------
@dataclass(frozen=True)
class Recommendation:
    category: str
    action: str
    goal: str
    example: str
    estimated_impact: str
    priority: str
    detailed_action: Optional[str] = None


@dataclass(frozen=True)
class ConsumerInsight:
    category: str
    usage_score: int
    type: str


@dataclass(frozen=True)
class RecommendedInvestment:
    amount: str
    period: str
    rationale: str


@dataclass(frozen=True)
class CostProjection:
    month: str
    cost: float
    savings_opportunity: float
    impact_on_profit: str


@dataclass(frozen=True)
class Source:
    title: str
    uri: str


@dataclass(frozen=True)
class StrategicPlan:
    summary: str
    recommendations: List[Recommendation]
    projected_profitability: List[float]
    consumer_insights: List[ConsumerInsight]
    recommended_investment: Optional[RecommendedInvestment] = None
    operational_cost_projections: Optional[List[CostProjection]] = None
    sources: Optional[List[Source]] = None


# --- Assistant transcript --------------------------------------------------
@dataclass
class ChatMessage:
    role: str
    text: str
    sources: List[Source] = field(default_factory=list)

    @property
    def is_user(self) -> bool:
        return self.role == "user"
