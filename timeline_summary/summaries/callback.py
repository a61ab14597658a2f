"""Deliver the terminal status of an async run to the caller's endpoint."""

import httpx
import structlog

from timeline_summary.config import settings

logger = structlog.get_logger()

SUCCESS = "Success"
FAILED = "Failed"


def build_callback_payload(
    account_id: str,
    loggedin_user_id: str | None,
    process_result: str,
    message: str,
) -> dict:
    return {
        "accountId": account_id,
        "loggedinUserId": loggedin_user_id,
        "status": "Completed",
        "processResult": process_result,
        "message": message,
    }


async def send_callback(
    callback_url: str,
    payload: dict,
    access_token: str,
    timeout: float = settings.CALLBACK_TIMEOUT_SECONDS,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """POST *payload* once. Failures are logged, never retried or raised."""
    logger.info(
        "callback_sending",
        url=callback_url,
        process_result=payload.get("processResult"),
        message=payload.get("message"),
    )
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            resp = await client.post(
                callback_url,
                json=payload,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {access_token}",
                },
            )
            resp.raise_for_status()
    except httpx.HTTPError as exc:
        logger.error("callback_failed", url=callback_url, error=str(exc))
        return False

    logger.info("callback_delivered", url=callback_url, status=resp.status_code)
    return True
