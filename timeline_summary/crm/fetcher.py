"""Fetch every record a SOQL query matches, following pagination cursors."""

import asyncio

import httpx
import structlog

from timeline_summary.crm.client import SalesforceConnection
from timeline_summary.exceptions import FetchError

logger = structlog.get_logger()

# Pause between page requests to stay under the org's API rate limits
PAGE_DELAY_SECONDS = 0.2


async def fetch_records(connection: SalesforceConnection, query: str) -> list[dict]:
    """Return all matching records in server order.

    Any failing page aborts the whole fetch with FetchError; pages already
    read are discarded.
    """
    records: list[dict] = []
    pages = 0
    logger.info("fetch_records_started", query=query)

    try:
        page = await connection.query(query)
        while True:
            pages += 1
            records.extend(page.records)
            if page.done or not page.next_records_url:
                break
            await asyncio.sleep(PAGE_DELAY_SECONDS)
            page = await connection.query_more(page.next_records_url)
    except (httpx.HTTPError, ValueError) as exc:
        # ValueError: a response body that is not JSON
        logger.error("fetch_records_failed", pages=pages, error=str(exc))
        raise FetchError(f"Error fetching records: {exc}") from exc

    logger.info("fetch_records_complete", pages=pages, record_count=len(records))
    return records
