from datetime import datetime

import pytest

from revelevate.models import ExtraMetrics, PerformanceSnapshot


@pytest.fixture
def fixed_now():
    return datetime(2026, 3, 1, 9, 30, 0)


@pytest.fixture
def snapshot():
    return PerformanceSnapshot(
        profit_margin=53.3,
        transactions=2,
        occ_rate=70,
        adr=180,
        direct=50,
        ota=50,
        extra_metrics=ExtraMetrics(
            avg_service_rating=4.4,
            hosp_addon_pct=18,
            non_hosp_addon_pct=9,
            hosp_addon_rating=4.6,
            non_hosp_addon_rating=3.9,
        ),
        last_sync="2026-03-01 09:30:00",
        source="march.csv",
    )


@pytest.fixture
def raw_plan():
    return {
        "summary": "  Shift mix toward direct bookings and trim energy costs.  ",
        "recommendations": [
            {
                "category": "Revenue Optimization",
                "action": "Launch member rates",
                "detailedAction": "Offer 10% off for loyalty members booking direct.",
                "goal": "Grow direct share to 35%",
                "example": "Members-only weekend rate",
                "estimatedImpact": "6%",
                "priority": "High",
            },
            {
                "category": "Operational Efficiency",
                "action": "Smart thermostats",
                "goal": "Cut utilities by 12%",
                "example": "Occupancy-linked HVAC setbacks",
                "estimatedImpact": "++3%",
                "priority": "medium",
            },
            {
                "category": "Guest Experience",
                "action": "Spa bundles",
                "goal": "Lift add-on usage",
                "example": "Stay + massage package",
                "estimatedImpact": "+2.5%",
                "priority": "Urgent",
            },
            {
                "category": "Data-Driven Decisions",
                "action": "Weekly pickup review",
                "goal": "React faster to demand",
                "example": "Tuesday pricing huddle",
                "estimatedImpact": "1.5%",
                "priority": "Low",
            },
        ],
        "projectedProfitability": [26, "27.5", 29.25],
        "consumerInsights": [
            {"category": "F&B", "usageScore": 72, "type": "Hospitality"},
            {"category": "External Laundry", "usageScore": "140", "type": "non-hospitality"},
            {"category": "Spa", "usageScore": -4, "type": "Hospitality"},
        ],
    }
