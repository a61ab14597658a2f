"""Thin async wrapper around the Anthropic SDK for structured summary calls.

Every call forces the model to answer through a single tool whose input
schema is the requested output shape, so the result is always a JSON object
rather than free text.
"""

from dataclasses import dataclass

import structlog
from anthropic import APIError, AsyncAnthropic

from timeline_summary.config import Settings, settings
from timeline_summary.exceptions import GenerationFailed

logger = structlog.get_logger()

FILES_API_BETA = "files-api-2025-04-14"


@dataclass(frozen=True)
class AssistantProfile:
    """Model, system instructions and limits used for one kind of summary."""

    profile_id: str
    name: str
    instructions: str
    model: str
    max_tokens: int = 8192


@dataclass(frozen=True)
class AssistantProfiles:
    monthly: AssistantProfile
    quarterly: AssistantProfile


def build_profiles(config: Settings = settings) -> AssistantProfiles:
    return AssistantProfiles(
        monthly=AssistantProfile(
            profile_id="monthly-summarizer",
            name=config.MONTHLY_ASSISTANT_NAME,
            instructions=config.MONTHLY_ASSISTANT_INSTRUCTIONS,
            model=config.ANTHROPIC_MODEL,
            max_tokens=config.ANTHROPIC_MAX_TOKENS,
        ),
        quarterly=AssistantProfile(
            profile_id="quarterly-aggregator",
            name=config.QUARTERLY_ASSISTANT_NAME,
            instructions=config.QUARTERLY_ASSISTANT_INSTRUCTIONS,
            model=config.ANTHROPIC_MODEL,
            max_tokens=config.ANTHROPIC_MAX_TOKENS,
        ),
    )


@dataclass(frozen=True)
class OutputFunction:
    """Name and JSON schema of the structured answer the model must produce."""

    name: str
    description: str
    parameters: dict

    def as_tool(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }

    def missing_keys(self, arguments: dict) -> list[str]:
        """Top-level required fields of the schema absent from *arguments*."""
        return [key for key in self.parameters.get("required", []) if key not in arguments]


class AssistantClient:
    def __init__(self, client: AsyncAnthropic | None = None):
        self._client = client or AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY)

    async def upload_transient_file(self, filename: str, content: bytes) -> str:
        uploaded = await self._client.beta.files.upload(
            file=(filename, content, "text/plain"),
            betas=[FILES_API_BETA],
        )
        logger.info("llm_file_uploaded", file_id=uploaded.id, size=len(content))
        return uploaded.id

    async def delete_transient_file(self, file_id: str) -> None:
        await self._client.beta.files.delete(file_id, betas=[FILES_API_BETA])
        logger.info("llm_file_deleted", file_id=file_id)

    async def run_forced_call(
        self,
        profile: AssistantProfile,
        function: OutputFunction,
        content: list[dict],
        with_files: bool = False,
    ) -> dict:
        """Run one request that must end in a call to *function*.

        Returns the call's arguments. Raises GenerationFailed when the model
        stops without calling the tool or the API rejects the request.
        """
        request = {
            "model": profile.model,
            "max_tokens": profile.max_tokens,
            "system": profile.instructions,
            "messages": [{"role": "user", "content": content}],
            "tools": [function.as_tool()],
            "tool_choice": {"type": "tool", "name": function.name},
        }
        try:
            if with_files:
                response = await self._client.beta.messages.create(**request, betas=[FILES_API_BETA])
            else:
                response = await self._client.messages.create(**request)
        except APIError as exc:
            raise GenerationFailed(f"AI service error: {exc}") from exc

        if response.stop_reason == "max_tokens":
            raise GenerationFailed(
                f"Function call was cut off at the {profile.max_tokens}-token output limit."
            )

        for block in response.content:
            if block.type == "tool_use" and block.name == function.name:
                if not isinstance(block.input, dict):
                    raise GenerationFailed("Function call arguments were not a JSON object.")
                missing = function.missing_keys(block.input)
                if missing:
                    raise GenerationFailed(
                        f"Function call arguments are missing required fields: {', '.join(missing)}"
                    )
                return block.input

        raise GenerationFailed(
            f"Function call was expected but did not occur (stop_reason={response.stop_reason})."
        )
