"""Partition fetched records into a year -> month index."""

from datetime import date, datetime, timezone

from timeline_summary.summaries.types import MONTH_NAMES, PeriodIndex


def parse_utc(value) -> datetime | None:
    """Parse a Salesforce date or datetime as UTC. Returns None when unusable."""
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc) if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # Salesforce emits offsets without a colon (2024-03-05T10:00:00.000+0000)
    if len(text) > 5 and text[-5] in "+-" and text[-4:].isdigit() and "T" in text:
        text = f"{text[:-2]}:{text[-2:]}"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def group_by_period(records: list[dict], date_field: str = "ActivityDate") -> PeriodIndex:
    """Group records by (UTC year, month name).

    Records without a parseable timestamp are dropped. Months keep the order
    in which they were first seen and records keep fetch order.
    """
    grouped: PeriodIndex = {}
    positions: dict[tuple[int, str], list[dict]] = {}

    for record in records:
        stamp = parse_utc(record.get(date_field))
        if stamp is None:
            continue
        month = MONTH_NAMES[stamp.month - 1]
        key = (stamp.year, month)
        bucket = positions.get(key)
        if bucket is None:
            bucket = []
            positions[key] = bucket
            grouped.setdefault(stamp.year, []).append({month: bucket})
        bucket.append(record)

    return grouped


def project_record(record: dict, date_field: str = "ActivityDate") -> dict:
    """Reduce a task record to the fields the monthly prompt needs."""
    return {
        "Id": record.get("Id"),
        "Description": record.get("Description") or "No Description",
        "Subject": record.get("Subject") or "No Subject",
        "ActivityDate": record.get(date_field) or "No Activity Date",
    }


def flatten(index: PeriodIndex) -> list[dict]:
    return [
        record
        for months in index.values()
        for entry in months
        for bucket in entry.values()
        for record in bucket
    ]
