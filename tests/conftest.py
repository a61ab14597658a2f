import re

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from timeline_summary.config import settings
from timeline_summary.crm.client import QueryPage, SaveResult
from timeline_summary.database import get_db
from timeline_summary.dependencies import get_pipeline_context, get_session_factory
from timeline_summary.exceptions import GenerationFailed
from timeline_summary.llm import build_profiles
from timeline_summary.main import create_app
from timeline_summary.models.base import Base
from timeline_summary.summaries.pipeline import PipelineContext

TEST_DATABASE_URL = settings.TEST_DATABASE_URL

engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
test_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

_MONTH_IN_PROMPT = re.compile(
    r"(January|February|March|April|May|June|July|August|September|October|November|December) (\d{4})"
)
_QUARTER_IN_PROMPT = re.compile(r"(Q[1-4]) (\d{4})")


class FakeSalesforce:
    """In-memory stand-in for SalesforceConnection."""

    def __init__(self):
        self.pages: list[list[dict]] = [[]]
        self.fail_on_page: int | None = None
        self.fail_batches = False
        self.rejected_periods: set[str] = set()
        self.queries: list[str] = []
        self.query_more_calls: list[str] = []
        self.created: list[dict] = []
        self.updated: list[dict] = []
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True

    def _page(self, index: int) -> QueryPage:
        if self.fail_on_page == index:
            raise httpx.ConnectError("connection reset by peer")
        last = index == len(self.pages) - 1
        return QueryPage(
            records=self.pages[index],
            done=last,
            next_records_url=None if last else f"/services/data/v60.0/query/01gxx-{index + 1}",
        )

    async def query(self, soql: str) -> QueryPage:
        self.queries.append(soql)
        return self._page(0)

    async def query_more(self, next_records_url: str) -> QueryPage:
        self.query_more_calls.append(next_records_url)
        return self._page(int(next_records_url.rsplit("-", 1)[1]))

    def _save(self, records: list[dict], sink: list[dict]) -> list[SaveResult]:
        if self.fail_batches:
            raise httpx.ConnectError("composite request failed")
        results = []
        for record in records:
            sink.append(record)
            period = record.get("Month__c") or record.get("FY_Quarter__c")
            if f"{period} {record.get('Year__c')}" in self.rejected_periods:
                results.append(SaveResult(
                    id=None,
                    success=False,
                    errors=[{"statusCode": "STRING_TOO_LONG", "message": "Summary: data value too large"}],
                ))
            else:
                results.append(SaveResult(id=record.get("Id") or f"a0X{len(sink):015d}", success=True))
        return results

    async def create(self, sobject: str, records: list[dict]) -> list[SaveResult]:
        return self._save(records, self.created)

    async def update(self, sobject: str, records: list[dict]) -> list[SaveResult]:
        return self._save(records, self.updated)


class FakeAssistant:
    """Answers forced calls with canned monthly/quarterly output."""

    def __init__(self):
        self.calls: list[dict] = []
        self.uploaded: list[str] = []
        self.deleted: list[str] = []
        self.fail_when: set[str] = set()
        self.malformed_when: set[str] = set()

    async def upload_transient_file(self, filename: str, content: bytes) -> str:
        file_id = f"file-{len(self.uploaded) + 1}"
        self.uploaded.append(file_id)
        return file_id

    async def delete_transient_file(self, file_id: str) -> None:
        self.deleted.append(file_id)

    async def run_forced_call(self, profile, function, content, with_files=False) -> dict:
        text = content[-1]["text"]
        self.calls.append({"profile": profile.profile_id, "function": function.name, "text": text, "with_files": with_files})

        for marker in self.fail_when:
            if marker in text:
                raise GenerationFailed("Function call was expected but did not occur (stop_reason=end_turn).")

        quarter = _QUARTER_IN_PROMPT.search(text)
        if profile.profile_id == "quarterly-aggregator" and quarter:
            label, year = quarter.group(1), int(quarter.group(2))
            if f"{label} {year}" in self.malformed_when:
                return {"quarters": "not what was asked for"}
            return {
                "yearlySummary": [{
                    "year": year,
                    "quarters": [{
                        "quarter": label,
                        "summary": f"<h1>Sales Activity Summary for {label} {year}</h1>",
                        "activityMapping": [],
                        "activityCount": 7,
                        "count": 7,
                        "startdate": "",
                    }],
                }],
            }

        month = _MONTH_IN_PROMPT.search(text)
        heading = f"{month.group(1)} {month.group(2)}" if month else "this month"
        return {
            "summary": f"<h1>Sales Activity Summary for {heading}</h1><ul><li>Follow-up calls</li></ul>",
            "activityMapping": {
                "Key Themes of Customer Interaction": [],
                "Tone and Purpose of Interaction": [],
                "Recommended Action and Next Steps": [],
            },
            "activityCount": 1,
        }


def task(record_id: str, activity_date: str | None, subject: str = "Call") -> dict:
    return {"Id": record_id, "Subject": subject, "Description": f"{subject} notes", "ActivityDate": activity_date}


@pytest.fixture
def store() -> FakeSalesforce:
    return FakeSalesforce()


@pytest.fixture
def assistant() -> FakeAssistant:
    return FakeAssistant()


@pytest.fixture
def pipeline_context(store: FakeSalesforce, assistant: FakeAssistant) -> PipelineContext:
    return PipelineContext(
        connection_factory=lambda token: store,
        assistant=assistant,
        profiles=build_profiles(settings),
    )


@pytest.fixture
def make_task():
    return task


@pytest_asyncio.fixture(autouse=True)
async def setup_database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def override_get_db():
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def callbacks(monkeypatch) -> list[dict]:
    """Capture callback deliveries instead of posting them."""
    sent: list[dict] = []

    async def _record(callback_url, payload, access_token, **kwargs):
        sent.append({"url": callback_url, "payload": payload, "token": access_token})
        return True

    monkeypatch.setattr("timeline_summary.summaries.router.send_callback", _record)
    return sent


@pytest_asyncio.fixture
async def client(pipeline_context: PipelineContext, callbacks: list[dict]):
    app = create_app()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: test_session_factory
    app.dependency_overrides[get_pipeline_context] = lambda: pipeline_context
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": "Bearer 00Dxx0000001gPz!AQ4AQFakeAccessToken"}
