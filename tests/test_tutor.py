import httpx

from academy.ai.tutor import TutorClient, _extract_claude_text, unavailable_reply
from conftest import make_settings


def claude_reply(run, handler, message="hi"):
    settings = make_settings(claude_enabled=True, claude_api_key="test-key")

    async def _call():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            return await TutorClient(settings, http).reply(message, model="claude-haiku")

    return run(_call())


def test_claude_reply_text(run):
    def handler(request):
        assert request.headers["Authorization"] == "Bearer test-key"
        return httpx.Response(200, json={"content": [{"type": "text", "text": "Recursion calls itself."}]})

    assert claude_reply(run, handler) == {"reply": "Recursion calls itself."}


def test_claude_unexpected_body_falls_back(run):
    for body in (["unexpected"], "just a string", 42):
        result = claude_reply(run, lambda request, body=body: httpx.Response(200, json=body))
        assert result["reply"] == unavailable_reply("hi")
        assert "debug" in result


def test_claude_http_error_falls_back(run):
    result = claude_reply(run, lambda request: httpx.Response(502, text="bad gateway"))
    assert result["reply"] == unavailable_reply("hi")


def test_extract_text_ignores_malformed_items():
    assert _extract_claude_text({"content": ["plain"]}) is None
    assert _extract_claude_text({"completions": ["plain"]}) is None
    assert _extract_claude_text({"completions": [{"data": "x", "text": "fallback"}]}) == "fallback"
    assert _extract_claude_text({"completion": "done"}) == "done"
    assert _extract_claude_text(["unexpected"]) is None
