# gemini_client.py
"""
Minimal client for the Generative Language REST API (generateContent).

Transient failures (timeouts, connection resets, 408/429/5xx) are retried
with exponential backoff; anything else surfaces as GenerationError.
"""
import base64
import logging
import time

import requests

import config
from errors import GenerationError

logger = logging.getLogger(__name__)

API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}


class GeminiClient:
    def __init__(self, api_key=None, session=None, timeout=None,
                 max_retries=None, base_delay=1.0, max_delay=20.0):
        self.api_key = api_key if api_key is not None else config.GEMINI_API_KEY
        self.session = session or requests.Session()
        self.timeout = timeout or config.GEMINI_TIMEOUT
        self.max_retries = config.GEMINI_MAX_RETRIES if max_retries is None else max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay

    def generate(self, model: str, contents: list, system: str = None,
                 tools: list = None, generation_config: dict = None) -> dict:
        """POSTs one generateContent call and returns the decoded JSON body."""
        if not self.api_key:
            raise GenerationError("GEMINI_API_KEY is not configured")

        body = {"contents": contents}
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}
        if tools:
            body["tools"] = tools
        if generation_config:
            body["generationConfig"] = generation_config

        url = f"{API_BASE}/{model}:generateContent"
        headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key}

        delay = self.base_delay
        for attempt in range(self.max_retries + 1):
            last = attempt == self.max_retries
            try:
                resp = self.session.post(url, headers=headers, json=body,
                                         timeout=self.timeout)
            except (requests.Timeout, requests.ConnectionError) as e:
                if last:
                    raise GenerationError(f"Gemini request failed: {e}") from e
                logger.warning("Gemini %s unreachable (attempt %d): %s",
                               model, attempt + 1, e)
            else:
                if resp.status_code < 400:
                    try:
                        return resp.json()
                    except ValueError as e:
                        raise GenerationError("Gemini returned a non-JSON body") from e
                if resp.status_code not in RETRYABLE_STATUS or last:
                    raise GenerationError(
                        f"Gemini {model} returned HTTP {resp.status_code}")
                logger.warning("Gemini %s returned %s (attempt %d)",
                               model, resp.status_code, attempt + 1)

            time.sleep(min(delay, self.max_delay))
            delay *= 2

        raise GenerationError("Gemini retries exhausted")


# ---------------- response helpers ----------------
def _parts(response: dict) -> list:
    candidates = response.get("candidates") or []
    if not candidates:
        return []
    return (candidates[0].get("content") or {}).get("parts") or []


def response_text(response: dict) -> str:
    return "".join(p.get("text", "") for p in _parts(response))


def function_calls(response: dict) -> list:
    return [p["functionCall"] for p in _parts(response) if "functionCall" in p]


def inline_image_url(response: dict):
    """First inline image of a response as a data: URL, or None."""
    for p in _parts(response):
        blob = p.get("inlineData") or p.get("inline_data")
        if blob and blob.get("data"):
            mime = blob.get("mimeType") or blob.get("mime_type") or "image/png"
            try:
                base64.b64decode(blob["data"], validate=True)
            except ValueError:
                logger.warning("Skipping corrupt inline image (%s)", mime)
                continue
            return f"data:{mime};base64,{blob['data']}"
    return None
