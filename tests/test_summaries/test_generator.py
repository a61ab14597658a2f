import pytest

from timeline_summary.config import settings
from timeline_summary.exceptions import GenerationFailed
from timeline_summary.llm import build_profiles
from timeline_summary.summaries.functions import MONTHLY_SUMMARY_FUNCTION, load_function
from timeline_summary.summaries.generator import build_prompt, generate_summary, use_direct_mode

PROFILES = build_profiles(settings)
MONTHLY = load_function(None, MONTHLY_SUMMARY_FUNCTION)


def test_direct_mode_thresholds():
    assert use_direct_mode("x" * 255_999, 1_999)
    assert not use_direct_mode("x" * 256_000, 10)
    assert not use_direct_mode("short", 2_000)


def test_prompt_embeds_items_as_json():
    prompt = build_prompt("Summarize March 2024", [{"Id": "00T1"}])
    assert prompt.startswith("Summarize March 2024")
    assert '[{"Id": "00T1"}]' in prompt


@pytest.mark.asyncio
async def test_small_input_is_sent_inline(assistant):
    result = await generate_summary(
        assistant, PROFILES.monthly, MONTHLY, [{"Id": "00T1"}], "Summarize March 2024",
    )

    assert result["activityCount"] == 1
    assert assistant.uploaded == []
    assert assistant.calls[0]["with_files"] is False
    assert '"Id": "00T1"' in assistant.calls[0]["text"]


@pytest.mark.asyncio
async def test_large_input_goes_through_an_attachment_that_is_removed(assistant):
    items = [{"Id": f"00T{i}"} for i in range(5)]
    result = await generate_summary(
        assistant, PROFILES.monthly, MONTHLY, items, "Summarize March 2024", item_limit=3,
    )

    assert result["summary"].startswith("<h1>")
    assert assistant.uploaded == ["file-1"]
    assert assistant.deleted == ["file-1"]
    call = assistant.calls[0]
    assert call["with_files"] is True
    assert "00T1" not in call["text"]


@pytest.mark.asyncio
async def test_attachment_is_removed_when_the_call_fails(assistant):
    assistant.fail_when = {"March 2024"}
    with pytest.raises(GenerationFailed):
        await generate_summary(
            assistant, PROFILES.monthly, MONTHLY, [{"Id": "00T1"}], "Summarize March 2024", char_limit=10,
        )
    assert assistant.deleted == assistant.uploaded == ["file-1"]
