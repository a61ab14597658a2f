"""Async Salesforce REST connection using httpx.

One connection is opened per pipeline run and bound to the caller's access
token; it is never shared between runs.
"""

from dataclasses import dataclass, field

import httpx
import structlog

from timeline_summary.config import settings

logger = structlog.get_logger()

# sObject Collections accept at most 200 records per request
COLLECTION_CHUNK_SIZE = 200


@dataclass(frozen=True)
class QueryPage:
    records: list[dict]
    done: bool
    next_records_url: str | None = None


@dataclass(frozen=True)
class SaveResult:
    id: str | None
    success: bool
    errors: list[dict] = field(default_factory=list)


class SalesforceConnection:
    def __init__(
        self,
        access_token: str,
        instance_url: str | None = None,
        api_version: str | None = None,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.instance_url = (instance_url or settings.SF_INSTANCE_URL).rstrip("/")
        self.api_version = api_version or settings.SF_API_VERSION
        self._client = httpx.AsyncClient(
            base_url=self.instance_url,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @property
    def _data_path(self) -> str:
        return f"/services/data/{self.api_version}"

    async def __aenter__(self) -> "SalesforceConnection":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def query(self, soql: str) -> QueryPage:
        resp = await self._client.get(f"{self._data_path}/query", params={"q": soql})
        resp.raise_for_status()
        return _parse_query_page(resp.json())

    async def query_more(self, next_records_url: str) -> QueryPage:
        resp = await self._client.get(next_records_url)
        resp.raise_for_status()
        return _parse_query_page(resp.json())

    async def create(self, sobject: str, records: list[dict]) -> list[SaveResult]:
        return await self._save_collection("POST", sobject, records)

    async def update(self, sobject: str, records: list[dict]) -> list[SaveResult]:
        return await self._save_collection("PATCH", sobject, records)

    async def _save_collection(self, method: str, sobject: str, records: list[dict]) -> list[SaveResult]:
        """Submit records with allOrNone=false so one bad row does not sink the rest."""
        results: list[SaveResult] = []
        for start in range(0, len(records), COLLECTION_CHUNK_SIZE):
            chunk = records[start:start + COLLECTION_CHUNK_SIZE]
            body = {
                "allOrNone": False,
                "records": [{"attributes": {"type": sobject}, **rec} for rec in chunk],
            }
            resp = await self._client.request(
                method,
                f"{self._data_path}/composite/sobjects",
                json=body,
                headers={"Content-Type": "application/json"},
            )
            resp.raise_for_status()
            for raw in resp.json():
                results.append(
                    SaveResult(
                        id=raw.get("id"),
                        success=bool(raw.get("success")),
                        errors=raw.get("errors") or [],
                    )
                )
            logger.debug(
                "salesforce_collection_saved",
                method=method,
                sobject=sobject,
                chunk_size=len(chunk),
            )
        return results


def _parse_query_page(data: dict) -> QueryPage:
    return QueryPage(
        records=data.get("records", []),
        done=data.get("done", True),
        next_records_url=data.get("nextRecordsUrl"),
    )
