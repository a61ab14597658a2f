import json
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from timeline_summary.summaries.functions import DEFAULT_MONTHLY_PROMPT, DEFAULT_QUARTERLY_PROMPT


class SummaryRequest(BaseModel):
    """Trigger for one pipeline run. Field names follow the caller's camelCase wire format."""

    account_id: str = Field(..., alias="accountId", min_length=1)
    query_text: str = Field(..., alias="queryText", min_length=1)
    user_prompt: str = Field(DEFAULT_MONTHLY_PROMPT, alias="userPrompt")
    user_prompt_qtr: str = Field(DEFAULT_QUARTERLY_PROMPT, alias="userPromptQtr")
    month_function: dict | None = Field(None, alias="monthJSON")
    qtr_function: dict | None = Field(None, alias="qtrJSON")
    summary_map: dict[str, str] | None = Field(None, alias="summaryMap")
    loggedin_user_id: str | None = Field(None, alias="loggedinUserId")
    callback_url: str | None = Field(None, alias="callbackUrl")
    send_callback: bool = Field(True, alias="sendCallback")
    recent_months: int | None = Field(None, alias="recentMonths")

    model_config = {"populate_by_name": True}

    @field_validator("summary_map", mode="before")
    @classmethod
    def _parse_summary_map(cls, value):
        if value is None or value == "":
            return None
        if isinstance(value, str):
            return json.loads(value)
        return value

    @field_validator("month_function", "qtr_function", mode="before")
    @classmethod
    def _parse_function(cls, value):
        if value is None or value == "":
            return None
        if isinstance(value, str):
            value = json.loads(value)
        if not isinstance(value, dict) or not value.get("name"):
            raise ValueError("output schema must be an object with a name")
        return value

    @property
    def is_fast(self) -> bool:
        return self.recent_months is not None and self.recent_months > 0


class AcceptedResponse(BaseModel):
    status: str = "processing"
    message: str = "Summary is being generated"
    run_id: UUID


class GenerationErrorResponse(BaseModel):
    period: str
    year: int
    error: str


class PersistenceCounts(BaseModel):
    created: int
    updated: int
    failed: int
    errors: list[dict] = []


class SummaryErrors(BaseModel):
    monthly: list[GenerationErrorResponse]
    quarterly: list[GenerationErrorResponse]


class SummaryPersistence(BaseModel):
    monthly: PersistenceCounts
    quarterly: PersistenceCounts


class FastSummaryResponse(BaseModel):
    status: str = "completed"
    run_id: UUID
    record_count: int
    monthly: dict[str, dict[str, dict]]
    quarterly: dict[str, dict[str, dict]]
    errors: SummaryErrors
    persistence: SummaryPersistence


class SummaryRunResponse(BaseModel):
    id: UUID
    account_id: str
    requested_by: str | None
    mode: str
    status: str
    record_count: int
    monthly_count: int
    quarterly_count: int
    monthly_error_count: int
    quarterly_error_count: int
    records_created: int
    records_updated: int
    records_failed: int
    error_message: str | None
    completed_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}
