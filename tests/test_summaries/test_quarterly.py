import pytest

from timeline_summary.exceptions import MalformedOutput
from timeline_summary.summaries.quarterly import (
    aggregate_quarterly,
    build_quarterly_units,
    normalize_quarterly_output,
    quarter_for_month,
    render_quarter_prompt,
)
from timeline_summary.summaries.types import SummaryResult


def _monthly(period: str, month_index: int, year: int = 2024, count: int = 2) -> SummaryResult:
    return SummaryResult(
        period=period,
        year=year,
        month_index=month_index,
        ai_output={"summary": f"<h1>{period} {year}</h1>", "activityCount": count},
        source_record_count=count,
        period_start_date=f"{year}-{month_index + 1:02d}-01",
    )


def _quarterly(ai_output: dict, period: str = "Q1", year: int = 2024) -> SummaryResult:
    return SummaryResult(
        period=period, year=year, month_index=0, ai_output=ai_output,
        source_record_count=5, period_start_date="2024-01-01",
    )


def test_month_to_quarter_mapping_is_total_and_disjoint():
    mapping = {i: quarter_for_month(i) for i in range(12)}
    assert mapping == {0: 1, 1: 1, 2: 1, 3: 2, 4: 2, 5: 2, 6: 3, 7: 3, 8: 3, 9: 4, 10: 4, 11: 4}
    for bad in (-1, 12):
        with pytest.raises(ValueError):
            quarter_for_month(bad)


def test_units_group_months_by_year_and_quarter():
    monthly = {
        2024: {
            "March": _monthly("March", 2),
            "January": _monthly("January", 0, count=3),
            "July": _monthly("July", 6),
        },
        2023: {"December": _monthly("December", 11, year=2023)},
    }
    units = build_quarterly_units(monthly, "Consolidate {{YearQuarter}}")

    assert [u.label for u in units] == ["2023-Q4", "2024-Q1", "2024-Q3"]
    q1 = units[1]
    assert q1.period == "Q1"
    assert q1.month_index == 0
    assert q1.source_count == 5
    assert [item["summary"] for item in q1.items] == ["<h1>January 2024</h1>", "<h1>March 2024</h1>"]
    assert q1.prompt == "Consolidate Q1 2024"


def test_prompt_without_placeholders_gets_the_quarter_appended():
    assert render_quarter_prompt("Consolidate the months.", 2, 2024).endswith("Quarter: Q2 2024")


def test_normalize_picks_the_matching_quarter_and_defaults_start_date():
    result = normalize_quarterly_output(_quarterly({
        "yearlySummary": [{
            "year": "2024",
            "quarters": [
                {"quarter": "Q2", "summary": "other", "activityCount": 1},
                {"quarter": "Q1", "summary": "<h1>Q1</h1>", "activityCount": 9},
            ],
        }],
    }))

    assert result.period == "Q1"
    assert result.ai_output["summary"] == "<h1>Q1</h1>"
    assert result.source_record_count == 9
    assert result.period_start_date == "2024-01-01"


def test_normalize_keeps_a_valid_start_date():
    result = normalize_quarterly_output(_quarterly(
        {"yearlySummary": [{"year": 2024, "quarters": [
            {"quarter": "Q3", "summary": "s", "count": 4, "startdate": "2024-07-01"},
        ]}]},
        period="Q3",
    ))
    assert result.period_start_date == "2024-07-01"
    assert result.source_record_count == 4


@pytest.mark.parametrize("ai_output", [
    {},
    {"yearlySummary": "2024"},
    {"yearlySummary": [{"year": 2024, "quarters": [{"quarter": "Q1"}]}]},
    {"yearlySummary": [{"year": 2023, "quarters": []}, {"year": 2022, "quarters": []}]},
    {"yearlySummary": [{"year": 2024, "quarters": [
        {"quarter": "Q2", "summary": "a"}, {"quarter": "Q3", "summary": "b"},
    ]}]},
])
def test_normalize_rejects_unexpected_shapes(ai_output):
    with pytest.raises(MalformedOutput):
        normalize_quarterly_output(_quarterly(ai_output))


@pytest.mark.asyncio
async def test_malformed_quarter_is_dropped_and_reported():
    monthly = {2024: {"January": _monthly("January", 0), "April": _monthly("April", 3)}}

    async def _generate(unit):
        if unit.period == "Q2":
            return {"unexpected": True}
        return {"yearlySummary": [{"year": unit.year, "quarters": [
            {"quarter": unit.period, "summary": "ok", "activityCount": 2},
        ]}]}

    outcome = await aggregate_quarterly(monthly, "Consolidate {{YearQuarter}}", _generate)

    assert list(outcome.results[2024]) == ["Q1"]
    assert [(e.period, e.year) for e in outcome.errors] == [("Q2", 2024)]
    assert outcome.errors[0].error.startswith("Malformed output")


@pytest.mark.asyncio
async def test_no_monthly_results_means_no_quarterly_calls():
    async def _never(unit):
        raise AssertionError("generator must not be called")

    outcome = await aggregate_quarterly({}, "Consolidate", _never)
    assert outcome.results == {}
    assert outcome.errors == []


@pytest.mark.parametrize("ai_output", [
    {"yearlySummary": [{"year": 2024, "quarters": [{"quarter": "Q2", "summary": "other quarter"}]}]},
    {"yearlySummary": [{"year": 2023, "quarters": [{"quarter": "Q1", "summary": "other year"}]}]},
])
def test_normalize_rejects_an_answer_about_another_period(ai_output):
    with pytest.raises(MalformedOutput):
        normalize_quarterly_output(_quarterly(ai_output))


def test_normalize_accepts_a_single_unlabelled_entry():
    result = normalize_quarterly_output(_quarterly(
        {"yearlySummary": [{"quarters": [{"summary": "<h1>Q1</h1>", "activityCount": 3}]}]},
    ))
    assert result.period == "Q1"
    assert result.ai_output["summary"] == "<h1>Q1</h1>"
    assert result.source_record_count == 3
