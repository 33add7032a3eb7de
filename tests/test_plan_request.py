import json

import pytest

from revelevate.errors import NoDataError
from revelevate.models import PerformanceSnapshot
from revelevate.plan_request import build_plan_payload, build_plan_request


def test_default_snapshot_cannot_request_a_plan():
    with pytest.raises(NoDataError):
        build_plan_request(PerformanceSnapshot.default(), 15, 18, "Lisbon")


def test_context_carries_metrics_and_revpar(snapshot):
    request = build_plan_request(snapshot, 15, 18, "  Lisbon, PT ")

    assert request.target_growth == 15
    assert request.timeline_months == 18
    assert request.context["location"] == "Lisbon, PT"
    assert request.context["rev_par"] == "126.00"
    assert request.context["occupancy_pct"] == 70
    assert request.context["direct_pct"] == 50
    assert request.context["hosp_addon_rating"] == 4.6
    assert "march.csv" in request.context["source"]


def test_context_text_is_human_readable(snapshot):
    text = build_plan_request(snapshot, 10, 12, "").context_text

    assert "Location: Unspecified" in text
    assert "RevPAR: $126.00" in text
    assert "OTA Bookings: 50%" in text
    assert "Current Profit Margin: 53.3%" in text


@pytest.mark.parametrize(
    "growth,timeline",
    [(-1, 12), (51, 12), (10, 2), (10, 37), (10.5, 12), (True, 12)],
)
def test_goals_outside_domain_are_rejected(snapshot, growth, timeline):
    with pytest.raises(ValueError):
        build_plan_request(snapshot, growth, timeline, "Lisbon")


@pytest.mark.parametrize("growth,timeline", [(0, 3), (50, 36)])
def test_goal_bounds_are_inclusive(snapshot, growth, timeline):
    request = build_plan_request(snapshot, growth, timeline, "Lisbon")

    assert (request.target_growth, request.timeline_months) == (growth, timeline)


def test_payload_asks_for_requested_timeline(snapshot):
    request = build_plan_request(snapshot, 20, 9, "Porto")
    payload = build_plan_payload(request, model="m", temperature=0.3, max_tokens=4000)

    assert payload["model"] == "m"
    assert payload["messages"][0]["role"] == "system"
    user = json.loads(payload["messages"][1]["content"])
    assert user["goal"] == "Increase profitability by 20% within 9 months."
    assert any("exactly 9 monthly" in line for line in user["requirements"])
    assert user["metrics"]["location"] == "Porto"
