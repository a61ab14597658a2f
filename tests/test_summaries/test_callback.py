import json

import httpx
import pytest

from timeline_summary.summaries.callback import FAILED, SUCCESS, build_callback_payload, send_callback

CALLBACK_URL = "https://acme.my.salesforce.com/services/apexrest/TimelineSummaryCallback"


def test_payload_shape():
    payload = build_callback_payload("001x", "005x", SUCCESS, "Summary Processed Successfully")
    assert payload == {
        "accountId": "001x",
        "loggedinUserId": "005x",
        "status": "Completed",
        "processResult": "Success",
        "message": "Summary Processed Successfully",
    }


@pytest.mark.asyncio
async def test_delivers_once_with_bearer_token():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    payload = build_callback_payload("001x", None, FAILED, "Error fetching records: boom")
    delivered = await send_callback(CALLBACK_URL, payload, "token-1", transport=httpx.MockTransport(handler))

    assert delivered is True
    assert len(seen) == 1
    assert seen[0].method == "POST"
    assert seen[0].headers["Authorization"] == "Bearer token-1"
    assert json.loads(seen[0].content)["processResult"] == "Failed"


@pytest.mark.asyncio
async def test_error_status_is_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500)

    payload = build_callback_payload("001x", None, SUCCESS, "done")
    delivered = await send_callback(CALLBACK_URL, payload, "token-1", transport=httpx.MockTransport(handler))

    assert delivered is False
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_unreachable_endpoint_is_logged_not_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("name resolution failed", request=request)

    payload = build_callback_payload("001x", None, SUCCESS, "done")
    assert await send_callback(CALLBACK_URL, payload, "token-1", transport=httpx.MockTransport(handler)) is False
