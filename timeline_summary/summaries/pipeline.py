"""Summarization pipeline.

Fetch -> group -> monthly fan-out -> persist monthly -> quarterly fan-out ->
persist quarterly. Fetch and batch-submission failures abort the run;
failures of individual periods or records are collected and reported.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from timeline_summary.config import settings
from timeline_summary.crm.client import SalesforceConnection
from timeline_summary.crm.fetcher import fetch_records
from timeline_summary.crm.persistence import MONTHLY, QUARTERLY, PersistenceReport, persist_summaries
from timeline_summary.llm import AssistantClient, AssistantProfiles, OutputFunction, build_profiles
from timeline_summary.summaries.fanout import run_fan_out
from timeline_summary.summaries.functions import (
    MONTHLY_SUMMARY_FUNCTION,
    QUARTERLY_SUMMARY_FUNCTION,
    load_function,
)
from timeline_summary.summaries.generator import generate_summary
from timeline_summary.summaries.grouping import group_by_period, project_record
from timeline_summary.summaries.quarterly import aggregate_quarterly
from timeline_summary.summaries.schemas import SummaryRequest
from timeline_summary.summaries.types import (
    MONTH_INDEX,
    FanOutResult,
    GenerationUnit,
    PeriodIndex,
    SummaryMap,
)

logger = structlog.get_logger()


@dataclass
class PipelineContext:
    """Collaborators and limits for one or more runs.

    ``connection_factory`` opens a store connection for an access token; each
    run opens its own and closes it when the run ends.
    """

    connection_factory: Callable[[str], SalesforceConnection]
    assistant: AssistantClient
    profiles: AssistantProfiles
    date_field: str = "ActivityDate"
    summary_object: str = "Timeline_Summary__c"
    concurrency: int | None = None
    char_limit: int = 256_000
    item_limit: int = 2_000


def default_context() -> PipelineContext:
    return PipelineContext(
        connection_factory=lambda token: SalesforceConnection(access_token=token),
        assistant=AssistantClient(),
        profiles=build_profiles(settings),
        date_field=settings.SF_DATE_FIELD,
        summary_object=settings.SF_SUMMARY_OBJECT,
        concurrency=settings.FANOUT_CONCURRENCY,
        char_limit=settings.DIRECT_PROMPT_CHAR_LIMIT,
        item_limit=settings.DIRECT_PROMPT_ITEM_LIMIT,
    )


@dataclass
class PipelineResult:
    record_count: int
    monthly: FanOutResult
    quarterly: FanOutResult
    monthly_report: PersistenceReport
    quarterly_report: PersistenceReport

    @property
    def error_count(self) -> int:
        return len(self.monthly.errors) + len(self.quarterly.errors)

    def success_message(self) -> str:
        message = "Summary Processed Successfully"
        if self.error_count:
            message += (
                f" ({len(self.monthly.errors)} monthly and "
                f"{len(self.quarterly.errors)} quarterly summaries failed)"
            )
        return message


_WHERE = re.compile(r"\bWHERE\b", re.IGNORECASE)
_TRAILING_CLAUSE = re.compile(
    r"\b(GROUP\s+BY|ORDER\s+BY|LIMIT|OFFSET|FOR\s+(VIEW|UPDATE|REFERENCE))\b",
    re.IGNORECASE,
)


def apply_recency_window(query: str, months: int, date_field: str = "ActivityDate") -> str:
    """Restrict a SOQL query to the last *months* months of *date_field*.

    Existing conditions are kept and parenthesized so OR clauses still bind
    correctly; the new condition goes before ORDER BY / LIMIT.
    """
    window = f"{date_field} = LAST_N_MONTHS:{months}"
    query = query.strip()

    where = _WHERE.search(query)
    if where:
        tail = _TRAILING_CLAUSE.search(query, where.end())
        cut = tail.start() if tail else len(query)
        conditions = query[where.end():cut].strip()
        rest = query[cut:].strip()
        rewritten = f"{query[:where.start()]}WHERE ({conditions}) AND {window}"
    else:
        tail = _TRAILING_CLAUSE.search(query)
        cut = tail.start() if tail else len(query)
        rest = query[cut:].strip()
        rewritten = f"{query[:cut].rstrip()} WHERE {window}"

    return f"{rewritten} {rest}" if rest else rewritten


def render_month_prompt(template: str, month: str, year: int) -> str:
    return template.replace("{{YearMonth}}", f"{month} {year}")


def build_monthly_units(index: PeriodIndex, template: str, date_field: str = "ActivityDate") -> list[GenerationUnit]:
    units: list[GenerationUnit] = []
    for year, months in index.items():
        for entry in months:
            for month, records in entry.items():
                units.append(
                    GenerationUnit(
                        year=year,
                        period=month,
                        month_index=MONTH_INDEX[month.lower()],
                        items=[project_record(r, date_field) for r in records],
                        prompt=render_month_prompt(template, month, year),
                        source_count=len(records),
                    )
                )
    return units


def _log_units(phase: str, units: list[GenerationUnit]) -> None:
    for unit in units:
        logger.info("generation_unit_created", phase=phase, period=unit.display_label, items=len(unit.items))


async def run_pipeline(
    request: SummaryRequest,
    access_token: str,
    ctx: PipelineContext,
) -> PipelineResult:
    monthly_fn = load_function(request.month_function, MONTHLY_SUMMARY_FUNCTION)
    quarterly_fn = load_function(request.qtr_function, QUARTERLY_SUMMARY_FUNCTION)

    query = request.query_text
    if request.is_fast:
        query = apply_recency_window(query, request.recent_months, ctx.date_field)

    def _generator(profile, function: OutputFunction):
        async def _generate(unit: GenerationUnit) -> dict:
            return await generate_summary(
                ctx.assistant, profile, function, unit.items, unit.prompt,
                char_limit=ctx.char_limit, item_limit=ctx.item_limit,
            )
        return _generate

    log = logger.bind(account_id=request.account_id, mode="fast" if request.is_fast else "async")

    async with ctx.connection_factory(access_token) as connection:
        records = await fetch_records(connection, query)
        index = group_by_period(records, ctx.date_field)

        monthly_units = build_monthly_units(index, request.user_prompt, ctx.date_field)
        _log_units("monthly", monthly_units)
        monthly = await run_fan_out(
            monthly_units, _generator(ctx.profiles.monthly, monthly_fn), ctx.concurrency,
        )
        monthly_report = await persist_summaries(
            connection, monthly.results, request.account_id, MONTHLY,
            request.summary_map, ctx.summary_object,
        )

        quarterly = await aggregate_quarterly(
            monthly.results, request.user_prompt_qtr,
            _generator(ctx.profiles.quarterly, quarterly_fn), ctx.concurrency,
        )
        quarterly_report = await persist_summaries(
            connection, quarterly.results, request.account_id, QUARTERLY,
            request.summary_map, ctx.summary_object,
        )

    log.info(
        "pipeline_complete",
        records=len(records),
        monthly=monthly.result_count,
        monthly_errors=len(monthly.errors),
        quarterly=quarterly.result_count,
        quarterly_errors=len(quarterly.errors),
    )
    return PipelineResult(
        record_count=len(records),
        monthly=monthly,
        quarterly=quarterly,
        monthly_report=monthly_report,
        quarterly_report=quarterly_report,
    )


def serialize_summaries(summaries: SummaryMap) -> dict[str, dict[str, dict]]:
    return {
        str(year): {period: result.as_dict() for period, result in periods.items()}
        for year, periods in summaries.items()
    }
