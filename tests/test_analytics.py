import pytest

from revelevate.analytics import (
    aggregate_category_impact,
    build_profitability_path,
    category_impact_frame,
    consumer_usage_frame,
    parse_impact,
    profitability_frame,
)
from revelevate.models import ConsumerInsight, Recommendation


def _rec(category, impact, action="act"):
    return Recommendation(
        category=category,
        action=action,
        goal="",
        example="",
        estimated_impact=impact,
        priority="High",
    )


def test_category_totals_keep_first_appearance_order():
    recs = [
        _rec("Revenue Growth", "+5", "Dynamic pricing"),
        _rec("Revenue Growth", "+3", "Upsell suites"),
        _rec("Cost Efficiency", "+2", "LED retrofit"),
    ]

    impacts = aggregate_category_impact(recs)

    assert [(i.category, i.total_impact) for i in impacts] == [
        ("Revenue Growth", 8.0),
        ("Cost Efficiency", 2.0),
    ]
    assert impacts[0].actions == ["Dynamic pricing", "Upsell suites"]


def test_category_totals_match_overall_sum():
    recs = [_rec("A", "+1.5%"), _rec("B", "+2.25%"), _rec("A", "+4%"), _rec("C", "0.5")]

    total = sum(i.total_impact for i in aggregate_category_impact(recs))

    assert total == pytest.approx(8.25)


@pytest.mark.parametrize(
    "raw,expected",
    [("+12%", 12.0), ("7.5 pts", 7.5), ("-3%", -3.0), ("+-3%", 0.0), ("TBD", 0.0), ("", 0.0)],
)
def test_parse_impact(raw, expected):
    assert parse_impact(raw) == expected


def test_unparseable_impacts_contribute_nothing():
    impacts = aggregate_category_impact([_rec("A", "+TBD"), _rec("A", "+2%")])

    assert impacts[0].total_impact == 2.0


def test_profitability_path_endpoints():
    points = build_profitability_path([26.111, 27.0, 28.5, 30.0], target_growth=20, timeline_months=4)

    assert len(points) == 5
    assert points[0].label == "Now"
    assert points[0].profit == points[0].target == 25.0
    assert points[1].label == "M1"
    assert points[1].profit == 26.11
    assert points[1].target == 30.0
    assert points[-1].target == pytest.approx(45.0)


def test_profitability_target_interpolates_linearly():
    points = build_profitability_path([0.0] * 3, target_growth=10, timeline_months=3)

    assert [p.target for p in points] == [25.0, 28.33, 31.67, 35.0]


def test_short_projection_leaves_gaps():
    points = build_profitability_path([26.0], target_growth=12, timeline_months=3)

    assert len(points) == 4
    assert [p.profit for p in points] == [25.0, 26.0, None, None]
    assert points[-1].target == 37.0


def test_long_projection_is_truncated():
    points = build_profitability_path([26, 27, 28, 29, 30], target_growth=6, timeline_months=3)

    assert [p.label for p in points] == ["Now", "M1", "M2", "M3"]
    assert points[-1].profit == 28


def test_custom_baseline():
    points = build_profitability_path([41.0], target_growth=5, timeline_months=1, baseline=40.0)

    assert points[0].profit == 40.0
    assert points[1].target == 45.0


def test_non_positive_timeline_is_rejected():
    with pytest.raises(ValueError):
        build_profitability_path([], target_growth=5, timeline_months=0)


def test_chart_frames():
    points = build_profitability_path([26.0, 27.0], target_growth=4, timeline_months=2)
    frame = profitability_frame(points)

    assert list(frame.index) == ["Now", "M1", "M2"]
    assert list(frame.columns) == ["Projected", "Target"]

    impacts = category_impact_frame(aggregate_category_impact([_rec("A", "+2", "one"), _rec("A", "+1", "two")]))
    assert impacts.loc[0, "Key Actions"] == "one; two"

    usage = consumer_usage_frame(
        [
            ConsumerInsight(category="Spa", usage_score=40, type="Hospitality"),
            ConsumerInsight(category="Parking", usage_score=85, type="Non-Hospitality"),
        ]
    )
    assert list(usage["Service"]) == ["Parking", "Spa"]
    assert consumer_usage_frame([]).empty
