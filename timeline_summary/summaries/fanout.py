"""Run independent generation units concurrently and partition the outcomes."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import date

import structlog

from timeline_summary.summaries.types import (
    FanOutResult,
    GenerationError,
    GenerationUnit,
    SummaryResult,
)

logger = structlog.get_logger()

Generate = Callable[[GenerationUnit], Awaitable[dict]]


def period_start(year: int, month_index: int) -> str:
    return date(year, month_index + 1, 1).isoformat()


async def run_fan_out(
    units: list[GenerationUnit],
    generate: Generate,
    concurrency: int | None = None,
) -> FanOutResult:
    """Generate every unit at once (or *concurrency* at a time).

    A failing unit becomes a GenerationError and never affects its siblings.
    Each unit owns exactly one (year, period) slot in the result map.
    """
    outcome = FanOutResult()
    if not units:
        return outcome

    semaphore = asyncio.Semaphore(concurrency) if concurrency else None

    async def _run(unit: GenerationUnit) -> dict:
        if semaphore is None:
            return await generate(unit)
        async with semaphore:
            return await generate(unit)

    settled = await asyncio.gather(*[_run(u) for u in units], return_exceptions=True)

    for unit, result in zip(units, settled):
        if isinstance(result, BaseException):
            if isinstance(result, asyncio.CancelledError):
                raise result
            logger.warning(
                "summary_generation_failed",
                period=unit.period,
                year=unit.year,
                error=str(result) or type(result).__name__,
            )
            outcome.errors.append(
                GenerationError(period=unit.period, year=unit.year, error=str(result) or type(result).__name__)
            )
            continue

        if not isinstance(result, dict):
            outcome.errors.append(
                GenerationError(period=unit.period, year=unit.year, error="AI output was not an object")
            )
            continue

        outcome.results.setdefault(unit.year, {})[unit.period] = SummaryResult(
            period=unit.period,
            year=unit.year,
            month_index=unit.month_index,
            ai_output=result,
            source_record_count=unit.source_count,
            period_start_date=period_start(unit.year, unit.month_index),
        )

    logger.info(
        "fan_out_complete",
        units=len(units),
        succeeded=outcome.result_count,
        failed=len(outcome.errors),
    )
    return outcome
