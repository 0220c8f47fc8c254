import os
from typing import Optional

import httpx

from siteqa.config import ANSWER_FALLBACK_PREFIX, LLM
from siteqa.core.errors import LLMError

ANSWER_SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions about website content. "
    "Use ONLY the following context to answer the question. "
    "If you don't know the answer based on the context, say so.\n"
    "Context: {context}"
)


class LLMWrapper:
    def __init__(self, worker_url: Optional[str] = None, transport: Optional[httpx.BaseTransport] = None):
        self.worker_url = (worker_url or os.getenv("CLOUDFLARE_WORKER_URL", "")).rstrip("/")
        if not self.worker_url:
            raise RuntimeError("CLOUDFLARE_WORKER_URL environment variable is not set")
        self.max_tokens = LLM["max_tokens"]
        self.temperature = LLM["temperature"]
        self.timeout = LLM["timeout"]
        self._transport = transport

    def generate(self, system_prompt: str, user_message: str) -> str:
        """Non-streaming completion from the worker's /chat endpoint."""
        payload = {
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "stream": False,
        }

        url = f"{self.worker_url}/chat"
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(url, json=payload, headers={"Content-Type": "application/json"})
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise LLMError(f"LLM request failed: {type(exc).__name__}: {exc}") from exc

        # Worker returns plain text for non-streaming
        return response.text

    def answer(self, query: str, context: str) -> str:
        return self.generate(ANSWER_SYSTEM_PROMPT.format(context=context), query)


def fallback_answer(context: str) -> str:
    return f"{ANSWER_FALLBACK_PREFIX}{context}"


def generate_answer(llm: Optional[LLMWrapper], query: str, context: str) -> str:
    """Model answer for (query, context), or the context itself when generation is unavailable."""
    if llm is None:
        return fallback_answer(context)

    try:
        answer = llm.answer(query, context)
    except LLMError as e:
        print(f"[LLM] Generation failed, returning context: {e}", flush=True)
        return fallback_answer(context)

    if not answer or not answer.strip():
        print("[LLM] Empty answer, returning context", flush=True)
        return fallback_answer(context)
    return answer.strip()
