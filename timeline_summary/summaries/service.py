import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timeline_summary.models.base import utcnow
from timeline_summary.summaries.models import SummaryRun
from timeline_summary.summaries.pipeline import PipelineResult

logger = structlog.get_logger()


async def create_run(
    db: AsyncSession,
    account_id: str,
    requested_by: str | None,
    mode: str,
) -> SummaryRun:
    run = SummaryRun(account_id=account_id, requested_by=requested_by, mode=mode, status="processing")
    db.add(run)
    await db.commit()
    await db.refresh(run)
    logger.info("summary_run_created", run_id=str(run.id), account_id=account_id, mode=mode)
    return run


async def get_run(db: AsyncSession, run_id: uuid.UUID) -> SummaryRun | None:
    result = await db.execute(select(SummaryRun).where(SummaryRun.id == run_id))
    return result.scalar_one_or_none()


async def complete_run(db: AsyncSession, run_id: uuid.UUID, result: PipelineResult) -> SummaryRun | None:
    run = await get_run(db, run_id)
    if run is None:
        return None

    reports = (result.monthly_report, result.quarterly_report)
    run.status = "completed"
    run.record_count = result.record_count
    run.monthly_count = result.monthly.result_count
    run.quarterly_count = result.quarterly.result_count
    run.monthly_error_count = len(result.monthly.errors)
    run.quarterly_error_count = len(result.quarterly.errors)
    run.records_created = sum(r.created for r in reports)
    run.records_updated = sum(r.updated for r in reports)
    run.records_failed = sum(r.failed for r in reports)
    run.completed_at = utcnow()
    await db.commit()
    await db.refresh(run)
    return run


async def fail_run(db: AsyncSession, run_id: uuid.UUID, error_message: str) -> SummaryRun | None:
    run = await get_run(db, run_id)
    if run is None:
        return None
    run.status = "failed"
    run.error_message = error_message
    run.completed_at = utcnow()
    await db.commit()
    await db.refresh(run)
    return run
