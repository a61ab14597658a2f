from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./timeline_summary.db"
    TEST_DATABASE_URL: str = "sqlite+aiosqlite:///./test.db"

    # Salesforce REST API; the access token comes from each request
    SF_INSTANCE_URL: str = ""
    SF_API_VERSION: str = "v60.0"
    SF_SUMMARY_OBJECT: str = "Timeline_Summary__c"
    SF_DATE_FIELD: str = "ActivityDate"

    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_MODEL: str = "claude-sonnet-4-20250514"
    ANTHROPIC_MAX_TOKENS: int = 8192

    MONTHLY_ASSISTANT_NAME: str = "Salesforce Monthly Summarizer"
    MONTHLY_ASSISTANT_INSTRUCTIONS: str = (
        "You are an AI assistant specialized in analyzing raw Salesforce activity "
        "data for a single month and generating structured JSON summaries using the "
        "provided function. Focus on extracting key themes, tone, and recommended actions."
    )
    QUARTERLY_ASSISTANT_NAME: str = "Salesforce Quarterly Aggregator"
    QUARTERLY_ASSISTANT_INSTRUCTIONS: str = (
        "You are an AI assistant specialized in aggregating pre-summarized monthly "
        "Salesforce activity data (provided as JSON) into a structured quarterly JSON "
        "summary using the provided function. Consolidate insights and activity lists accurately."
    )

    # Prompts at or above either limit are sent as a file attachment instead
    DIRECT_PROMPT_CHAR_LIMIT: int = 256_000
    DIRECT_PROMPT_ITEM_LIMIT: int = 2_000

    # None = every period is generated at once
    FANOUT_CONCURRENCY: int | None = None

    CALLBACK_TIMEOUT_SECONDS: float = 30.0

    CORS_ORIGINS: str = "*"

    model_config = {"env_file": ".env", "extra": "ignore"}

    @model_validator(mode="after")
    def _fix_database_url(self):
        """Hosted Postgres URLs use postgresql://; asyncpg needs postgresql+asyncpg://."""
        if self.DATABASE_URL.startswith("postgresql://"):
            self.DATABASE_URL = self.DATABASE_URL.replace(
                "postgresql://", "postgresql+asyncpg://", 1,
            )
        return self


settings = Settings()
