"""One structured AI call per unit of work.

Small inputs are embedded in the prompt. Large inputs (by character or item
count) are uploaded as a transient file and referenced from a short prompt;
the file is removed again whatever the outcome of the call.
"""

import json
import uuid
from datetime import datetime, timezone

import structlog

from timeline_summary.config import settings
from timeline_summary.llm import AssistantClient, AssistantProfile, OutputFunction

logger = structlog.get_logger()

_ATTACHMENT_NOTE = (
    "The input data for this request is provided in the attached JSON file. "
    "Read every entry in the file before answering."
)


def build_prompt(instructions: str, items: list) -> str:
    return f"{instructions}\n\nInput data (JSON):\n{json.dumps(items, default=str)}"


def use_direct_mode(
    prompt: str,
    item_count: int,
    char_limit: int = settings.DIRECT_PROMPT_CHAR_LIMIT,
    item_limit: int = settings.DIRECT_PROMPT_ITEM_LIMIT,
) -> bool:
    return len(prompt) < char_limit and item_count < item_limit


def _attachment_filename() -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"salesforce_activities_{stamp}_{uuid.uuid4().hex[:8]}.json"


async def generate_summary(
    assistant: AssistantClient,
    profile: AssistantProfile,
    function: OutputFunction,
    items: list,
    instructions: str,
    char_limit: int = settings.DIRECT_PROMPT_CHAR_LIMIT,
    item_limit: int = settings.DIRECT_PROMPT_ITEM_LIMIT,
) -> dict:
    prompt = build_prompt(instructions, items)

    if use_direct_mode(prompt, len(items), char_limit, item_limit):
        logger.debug("summary_generation_direct", profile=profile.profile_id, items=len(items))
        return await assistant.run_forced_call(
            profile, function, [{"type": "text", "text": prompt}],
        )

    filename = _attachment_filename()
    body = json.dumps(items, indent=2, default=str).encode("utf-8")
    logger.info(
        "summary_generation_attachment",
        profile=profile.profile_id,
        items=len(items),
        prompt_chars=len(prompt),
    )
    file_id = await assistant.upload_transient_file(filename, body)
    try:
        content = [
            {"type": "document", "source": {"type": "file", "file_id": file_id}, "title": filename},
            {"type": "text", "text": f"{instructions}\n\n{_ATTACHMENT_NOTE}"},
        ]
        return await assistant.run_forced_call(profile, function, content, with_files=True)
    finally:
        try:
            await assistant.delete_transient_file(file_id)
        except Exception as exc:
            logger.warning("llm_file_delete_failed", file_id=file_id, error=str(exc))
