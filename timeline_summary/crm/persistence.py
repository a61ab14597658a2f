"""Write generated summaries back to Salesforce as Timeline_Summary__c records.

Each (year, period) entry is matched against the caller's index of existing
records ("Mar 2024", "Q1 2024" -> record Id). Matches are updated in place,
everything else is created, so re-running a period never duplicates it.
"""

import json
from dataclasses import dataclass, field

import httpx
import structlog

from timeline_summary.config import settings
from timeline_summary.crm.client import SalesforceConnection, SaveResult
from timeline_summary.exceptions import PersistenceError
from timeline_summary.summaries.types import SummaryMap, SummaryResult

logger = structlog.get_logger()

MAX_FIELD_LENGTH = 131_072

MONTHLY = "Monthly"
QUARTERLY = "Quarterly"


@dataclass
class PersistenceReport:
    category: str
    created: int = 0
    updated: int = 0
    failed: int = 0
    errors: list[dict] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "created": self.created,
            "updated": self.updated,
            "failed": self.failed,
            "errors": self.errors,
        }


def truncate(value, limit: int = MAX_FIELD_LENGTH):
    if isinstance(value, str) and len(value) > limit:
        return value[:limit]
    return value


def summary_key(result: SummaryResult, category: str) -> str:
    if category == QUARTERLY:
        return f"{result.period} {result.year}"
    return f"{result.period[:3]} {result.year}"


def build_payload(result: SummaryResult, parent_id: str, category: str) -> dict:
    summary_detail = result.ai_output.get("summary")
    if not isinstance(summary_detail, str):
        summary_detail = ""

    payload = {
        "Parent_Id__c": parent_id,
        "Account__c": parent_id,
        "Month__c": result.period if category == MONTHLY else "",
        "Year__c": str(result.year),
        "FY_Quarter__c": result.period if category == QUARTERLY else "",
        "Summary_Category__c": category,
        "Summary__c": json.dumps(result.ai_output, default=str),
        "Summary_Details__c": summary_detail,
        "Month_Date__c": result.period_start_date,
        "Number_of_Records__c": result.source_record_count,
    }
    return {name: truncate(value) for name, value in payload.items()}


def plan_upserts(
    summaries: SummaryMap,
    parent_id: str,
    category: str,
    existing: dict[str, str] | None,
) -> tuple[list[dict], list[dict]]:
    """Split payloads into (creates, updates) by key lookup in *existing*."""
    existing = existing or {}
    to_create: list[dict] = []
    to_update: list[dict] = []

    for periods in summaries.values():
        for result in periods.values():
            payload = build_payload(result, parent_id, category)
            record_id = existing.get(summary_key(result, category))
            if record_id:
                to_update.append({"Id": record_id, **payload})
            else:
                to_create.append(payload)

    return to_create, to_update


def _failure(action: str, record: dict, errors: list[dict]) -> dict:
    return {
        "action": action,
        "record_id": record.get("Id"),
        "year": record.get("Year__c"),
        "period": record.get("Month__c") or record.get("FY_Quarter__c"),
        "errors": errors,
    }


def _tally(report: PersistenceReport, action: str, records: list[dict], results: list[SaveResult]) -> None:
    for position, (record, res) in enumerate(zip(records, results), start=1):
        if res.success:
            if action == "create":
                report.created += 1
            else:
                report.updated += 1
            logger.info("summary_record_saved", action=action, position=position, record_id=res.id)
            continue
        report.failed += 1
        report.errors.append(_failure(action, record, res.errors))
        logger.error(
            "summary_record_save_failed",
            action=action,
            position=position,
            record_id=record.get("Id"),
            errors=res.errors,
        )

    # results are positional; records past the end got no answer at all
    if len(results) < len(records):
        logger.error(
            "summary_records_unanswered",
            action=action,
            submitted=len(records),
            answered=len(results),
        )
        for record in records[len(results):]:
            report.failed += 1
            report.errors.append(_failure(action, record, [{"message": "No result returned for this record"}]))


async def persist_summaries(
    connection: SalesforceConnection,
    summaries: SummaryMap,
    parent_id: str,
    category: str,
    existing: dict[str, str] | None = None,
    sobject: str | None = None,
) -> PersistenceReport:
    """Create or update one record per period.

    Individual record failures are logged and counted. A batch request that
    fails outright raises PersistenceError.
    """
    sobject = sobject or settings.SF_SUMMARY_OBJECT
    report = PersistenceReport(category=category)
    to_create, to_update = plan_upserts(summaries, parent_id, category, existing)

    try:
        if to_create:
            results = await connection.create(sobject, to_create)
            _tally(report, "create", to_create, results)
        else:
            logger.info("no_summary_records_to_create", category=category)

        if to_update:
            results = await connection.update(sobject, to_update)
            _tally(report, "update", to_update, results)
        else:
            logger.info("no_summary_records_to_update", category=category)
    except (httpx.HTTPError, ValueError) as exc:
        message = f"Failed to update record. Root Cause : {exc}"
        logger.error("summary_batch_failed", category=category, error=str(exc))
        raise PersistenceError(message) from exc

    logger.info(
        "summary_records_persisted",
        category=category,
        created=report.created,
        updated=report.updated,
        failed=report.failed,
    )
    return report
