"""
AI tutor chat backed by Cerebras, with an optional Claude HTTP route.
Every path degrades to a demo reply so the chat UI keeps working.
"""

import logging
from typing import Optional

import httpx
from cerebras.cloud.sdk import Cerebras
from fastapi.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 300
DEFAULT_TEMPERATURE = 0.2

TUTOR_SYSTEM = (
    "You are a patient tutor for students on an online learning platform. "
    "Explain concepts step by step and keep answers short."
)

# Canned replies for /api/ai/query, first matching phrase wins
CANNED_RESPONSES = [
    ("what is", "In education, we use technology to help understand concepts better. "
                "Your question is great! Let me help you understand this better."),
    ("how do i", "Here are the steps to accomplish this: First, understand the fundamentals. "
                 "Then, practice with examples. Finally, apply your knowledge."),
    ("explain", "A great question! Let me break this down into simpler parts so it's easier "
                "to understand. This concept is fundamental to learning."),
]
DEFAULT_CANNED_RESPONSE = (
    "That's a thoughtful question! To better answer you, could you provide more context "
    "about what you're trying to learn?"
)


def canned_response(query: str) -> str:
    lowered = query.lower()
    for phrase, response in CANNED_RESPONSES:
        if phrase in lowered:
            return response
    return DEFAULT_CANNED_RESPONSE


def demo_reply(provider: str, message: str) -> str:
    return f'Demo reply ({provider}). You asked: "{message}"'


def unavailable_reply(message: str) -> str:
    return f'Sorry, the AI service is temporarily unavailable. Demo reply: you asked "{message}".'


def _extract_claude_text(data) -> Optional[str]:
    """Pull reply text out of the response shapes the Claude endpoints use"""
    if not isinstance(data, dict):
        return None

    text = data.get("completion") or data.get("output") or data.get("response")
    if isinstance(text, str) and text:
        return text

    content = data.get("content")
    if isinstance(content, list) and content and isinstance(content[0], dict):
        return content[0].get("text")

    completions = data.get("completions")
    if isinstance(completions, list) and completions and isinstance(completions[0], dict):
        first = completions[0]
        nested = first.get("data")
        return (nested.get("text") if isinstance(nested, dict) else None) or first.get("text")
    return None


class TutorClient:
    def __init__(self, settings, http: httpx.AsyncClient):
        self.settings = settings
        self.http = http
        self._cerebras = Cerebras(api_key=settings.cerebras_api_key) if settings.cerebras_api_key else None

    async def reply(
        self,
        message: str,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        enabled: bool = True
    ) -> dict:
        """Never raises: provider problems become a fallback reply"""
        if not enabled:
            return {"reply": demo_reply("AI chat is disabled", message)}

        max_tokens = max_tokens or DEFAULT_MAX_TOKENS
        temperature = DEFAULT_TEMPERATURE if temperature is None else temperature

        if model and model.lower().startswith("claude"):
            return await self._claude(message, model, max_tokens, temperature)
        return await self._cerebras_chat(message, max_tokens, temperature)

    async def _claude(self, message: str, model: str, max_tokens: int, temperature: float) -> dict:
        if not self.settings.claude_enabled:
            return {"reply": demo_reply("requested model is not enabled on server", message)}
        if not self.settings.claude_api_key:
            logger.warning("CLAUDE_API_KEY not configured, returning demo reply")
            return {"reply": demo_reply("Claude key not configured", message)}

        payload = {
            "model": model,
            "prompt": message,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        try:
            response = await self.http.post(
                self.settings.claude_api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.settings.claude_api_key}"},
                timeout=self.settings.claude_timeout,
            )
            response.raise_for_status()
            data = response.json()
            if not isinstance(data, dict):
                raise ValueError(f"unexpected Claude response of type {type(data).__name__}")
            text = _extract_claude_text(data)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Claude proxy error: %s", e)
            return {"reply": unavailable_reply(message), "debug": {"error": str(e)}}

        return {"reply": text or "(no reply from Claude)"}

    async def _cerebras_chat(self, message: str, max_tokens: int, temperature: float) -> dict:
        if self._cerebras is None:
            logger.warning("CEREBRAS_API_KEY not configured, returning demo reply")
            return {"reply": demo_reply("AI key not configured", message)}

        try:
            response = await run_in_threadpool(
                self._cerebras.chat.completions.create,
                model=self.settings.cerebras_model,
                max_completion_tokens=max_tokens,
                temperature=temperature,
                messages=[
                    {"role": "system", "content": TUTOR_SYSTEM},
                    {"role": "user", "content": message},
                ],
            )
            text = response.choices[0].message.content
        except Exception as e:
            logger.error("Cerebras chat error: %s", e)
            return {"reply": unavailable_reply(message), "debug": {"error": str(e)}}

        return {"reply": text or "(no reply from AI)"}
