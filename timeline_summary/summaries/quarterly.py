"""Aggregate monthly summaries into quarterly summaries.

Monthly results are regrouped by (year, quarter). Each non-empty quarter is
one generation unit whose input is that quarter's monthly AI output, so the
quarterly call never sees raw records.

The quarterly function answers as ``yearlySummary -> [year] -> quarters ->
[quarter]``. That nesting is validated explicitly; a quarter whose output
does not fit is dropped from the run's output and reported as an error.
"""

from datetime import date

import structlog
from pydantic import BaseModel, ValidationError

from timeline_summary.exceptions import MalformedOutput
from timeline_summary.summaries.fanout import Generate, run_fan_out
from timeline_summary.summaries.types import (
    FanOutResult,
    GenerationError,
    GenerationUnit,
    SummaryMap,
    SummaryResult,
)

logger = structlog.get_logger()


def quarter_for_month(month_index: int) -> int:
    """Map a zero-based month index to its quarter number (1-4)."""
    if not 0 <= month_index <= 11:
        raise ValueError(f"month index out of range: {month_index}")
    return month_index // 3 + 1


def quarter_first_month(quarter: int) -> int:
    return (quarter - 1) * 3


def quarter_start(year: int, quarter: int) -> str:
    return date(year, quarter_first_month(quarter) + 1, 1).isoformat()


def render_quarter_prompt(template: str, quarter: int, year: int) -> str:
    label = f"Q{quarter}"
    rendered = (
        template.replace("{{YearQuarter}}", f"{label} {year}")
        .replace("{{Quarter}}", label)
        .replace("{{Year}}", str(year))
    )
    if rendered == template:
        rendered = f"{template}\n\nQuarter: {label} {year}"
    return rendered


def build_quarterly_units(monthly: SummaryMap, template: str) -> list[GenerationUnit]:
    groups: dict[tuple[int, int], list[SummaryResult]] = {}
    for year, periods in monthly.items():
        for result in periods.values():
            groups.setdefault((year, quarter_for_month(result.month_index)), []).append(result)

    units: list[GenerationUnit] = []
    for (year, quarter), results in sorted(groups.items()):
        results.sort(key=lambda r: r.month_index)
        units.append(
            GenerationUnit(
                year=year,
                period=f"Q{quarter}",
                month_index=quarter_first_month(quarter),
                items=[r.ai_output for r in results],
                prompt=render_quarter_prompt(template, quarter, year),
                source_count=sum(r.source_record_count for r in results),
                label=f"{year}-Q{quarter}",
            )
        )
    return units


class QuarterEntry(BaseModel):
    quarter: str | None = None
    summary: str
    activityCount: int | None = None
    count: int | None = None
    startdate: str | None = None

    model_config = {"extra": "allow"}


class YearEntry(BaseModel):
    year: int | None = None
    quarters: list[QuarterEntry]

    model_config = {"extra": "allow"}


class QuarterlyOutput(BaseModel):
    yearlySummary: list[YearEntry]

    model_config = {"extra": "allow"}


def _pick_year(output: QuarterlyOutput, year: int) -> tuple[int, YearEntry]:
    for position, entry in enumerate(output.yearlySummary):
        if entry.year == year:
            return position, entry
    if len(output.yearlySummary) == 1 and output.yearlySummary[0].year is None:
        return 0, output.yearlySummary[0]
    raise MalformedOutput(f"no yearlySummary entry for {year}")


def _pick_quarter(entry: YearEntry, period: str) -> tuple[int, QuarterEntry]:
    for position, quarter in enumerate(entry.quarters):
        if (quarter.quarter or "").strip().upper() == period:
            return position, quarter
    if len(entry.quarters) == 1 and not (entry.quarters[0].quarter or "").strip():
        return 0, entry.quarters[0]
    raise MalformedOutput(f"no quarters entry for {period}")


def _valid_date(value: str | None) -> str | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10]).isoformat()
    except ValueError:
        return None


def normalize_quarterly_output(result: SummaryResult) -> SummaryResult:
    """Reduce a quarterly AI answer to the single quarter entry it is about."""
    try:
        output = QuarterlyOutput.model_validate(result.ai_output)
    except ValidationError as exc:
        raise MalformedOutput(f"unexpected quarterly output shape: {exc.error_count()} validation errors") from exc

    year_pos, year_entry = _pick_year(output, result.year)
    quarter_pos, quarter = _pick_quarter(year_entry, result.period)

    raw_entry = result.ai_output["yearlySummary"][year_pos]["quarters"][quarter_pos]
    if quarter.activityCount is not None:
        count = quarter.activityCount
    elif quarter.count is not None:
        count = quarter.count
    else:
        count = result.source_record_count

    return SummaryResult(
        period=result.period,
        year=result.year,
        month_index=result.month_index,
        ai_output=dict(raw_entry),
        source_record_count=count,
        period_start_date=_valid_date(quarter.startdate) or quarter_start(result.year, quarter_for_month(result.month_index)),
    )


async def aggregate_quarterly(
    monthly: SummaryMap,
    template: str,
    generate: Generate,
    concurrency: int | None = None,
) -> FanOutResult:
    units = build_quarterly_units(monthly, template)
    generated = await run_fan_out(units, generate, concurrency)

    aggregated = FanOutResult(errors=list(generated.errors))
    for year, periods in generated.results.items():
        for period, result in periods.items():
            try:
                normalized = normalize_quarterly_output(result)
            except MalformedOutput as exc:
                logger.warning("quarterly_output_malformed", year=year, period=period, error=str(exc))
                aggregated.errors.append(GenerationError(period=period, year=year, error=f"Malformed output: {exc}"))
                continue
            aggregated.results.setdefault(year, {})[period] = normalized

    return aggregated
