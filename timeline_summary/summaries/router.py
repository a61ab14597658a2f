import uuid

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from timeline_summary.database import get_db
from timeline_summary.dependencies import get_access_token, get_pipeline_context, get_session_factory
from timeline_summary.summaries.callback import FAILED, SUCCESS, build_callback_payload, send_callback
from timeline_summary.summaries.pipeline import PipelineContext, run_pipeline, serialize_summaries
from timeline_summary.summaries.schemas import (
    AcceptedResponse,
    FastSummaryResponse,
    SummaryRequest,
    SummaryRunResponse,
)
from timeline_summary.summaries.service import complete_run, create_run, fail_run, get_run

logger = structlog.get_logger()
router = APIRouter(prefix="/summaries", tags=["summaries"])


async def _notify(request: SummaryRequest, access_token: str, process_result: str, message: str) -> None:
    if not request.send_callback:
        logger.info("callback_skipped", account_id=request.account_id, process_result=process_result)
        return
    payload = build_callback_payload(request.account_id, request.loggedin_user_id, process_result, message)
    await send_callback(request.callback_url, payload, access_token)


async def _run_summary_background(
    run_id: uuid.UUID,
    request: SummaryRequest,
    access_token: str,
    ctx: PipelineContext,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """Run the full pipeline after the request has been answered, then report through the callback.

    The callback goes out exactly once even when the run ledger cannot be updated.
    """
    try:
        result = await run_pipeline(request, access_token, ctx)
    except Exception as exc:
        logger.error(
            "summary_run_failed",
            run_id=str(run_id),
            account_id=request.account_id,
            error=str(exc),
        )
        await _record_outcome(session_factory, fail_run, run_id, str(exc))
        await _notify(request, access_token, FAILED, str(exc))
        return

    await _record_outcome(session_factory, complete_run, run_id, result)
    await _notify(request, access_token, SUCCESS, result.success_message())


async def _record_outcome(session_factory, finalize, run_id: uuid.UUID, outcome) -> None:
    try:
        async with session_factory() as db:
            await finalize(db, run_id, outcome)
    except Exception as exc:
        logger.error("summary_run_ledger_failed", run_id=str(run_id), error=str(exc))


@router.post("/generate", response_model=None)
async def generate(
    data: SummaryRequest,
    background_tasks: BackgroundTasks,
    access_token: str = Depends(get_access_token),
    ctx: PipelineContext = Depends(get_pipeline_context),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    db: AsyncSession = Depends(get_db),
):
    if not data.is_fast:
        if not data.callback_url:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required parameters")

        run = await create_run(db, data.account_id, data.loggedin_user_id, mode="async")
        background_tasks.add_task(
            _run_summary_background, run.id, data, access_token, ctx, session_factory,
        )
        return AcceptedResponse(run_id=run.id)

    run = await create_run(db, data.account_id, data.loggedin_user_id, mode="fast")
    try:
        result = await run_pipeline(data, access_token, ctx)
    except Exception as exc:
        logger.error("summary_run_failed", run_id=str(run.id), account_id=data.account_id, error=str(exc))
        await fail_run(db, run.id, str(exc))
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"status": "failed", "run_id": str(run.id), "message": str(exc)},
        )

    await complete_run(db, run.id, result)
    return FastSummaryResponse(
        run_id=run.id,
        record_count=result.record_count,
        monthly=serialize_summaries(result.monthly.results),
        quarterly=serialize_summaries(result.quarterly.results),
        errors={
            "monthly": [e.as_dict() for e in result.monthly.errors],
            "quarterly": [e.as_dict() for e in result.quarterly.errors],
        },
        persistence={
            "monthly": result.monthly_report.as_dict(),
            "quarterly": result.quarterly_report.as_dict(),
        },
    )


@router.get(
    "/runs/{run_id}",
    response_model=SummaryRunResponse,
    dependencies=[Depends(get_access_token)],
)
async def get_summary_run(
    run_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    run = await get_run(db, run_id)
    if not run:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Summary run not found")
    return SummaryRunResponse.model_validate(run)
