"""Client wrapper around the Google Gemini Generative Language API."""
from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional

import requests
from flask import current_app

from .errors import ExternalServiceError, MalformedResponseError


class GeminiClient:
    """Lightweight client for schema-constrained JSON generation via Gemini.

    Every call is single-shot and bounded by an explicit timeout; scoring
    callers decide whether a failure is fatal or optional.
    """

    DEFAULT_MODEL = "gemini-2.5-flash-lite"
    DEFAULT_TIMEOUT = 20

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key or os.getenv("GEMINI_API_KEY")
        self.model = model or os.getenv("GEMINI_MODEL", self.DEFAULT_MODEL)
        self.api_root = os.getenv(
            "GEMINI_API_URL",
            f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent",
        )
        try:
            self.timeout = float(os.getenv("GEMINI_TIMEOUT_SECONDS", str(self.DEFAULT_TIMEOUT)))
        except ValueError:
            self.timeout = self.DEFAULT_TIMEOUT

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def generate_json(
        self,
        prompt: str,
        temperature: float = 0.2,
        system_instruction: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        max_output_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> Optional[Any]:
        """Send a prompt and parse the JSON reply.

        Args:
            prompt: The prompt to send to Gemini
            temperature: Temperature for generation (0.0-1.0)
            system_instruction: Optional system instruction
            response_schema: Optional OpenAPI-style schema the reply must follow
            max_output_tokens: Optional max output tokens
            timeout: Per-call timeout in seconds (defaults to the client timeout)

        Returns:
            Parsed JSON response, or None when the reply carries no usable JSON.

        Raises:
            requests.exceptions.RequestException on transport errors, HTTP
            errors and timeouts.
        """
        if not self.is_configured:
            current_app.logger.error("Gemini API not configured - API key missing")
            return None

        payload: Dict[str, Any] = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "responseMimeType": "application/json",
            },
        }
        if response_schema is not None:
            payload["generationConfig"]["responseSchema"] = response_schema
        if max_output_tokens is not None:
            payload["generationConfig"]["maxOutputTokens"] = max_output_tokens
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        try:
            response = requests.post(
                f"{self.api_root}?key={self.api_key}",
                json=payload,
                timeout=timeout or self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            current_app.logger.error("Gemini HTTP error: %s - %s", status_code, exc)
            raise
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as exc:
            current_app.logger.error("Gemini request timed out/connection error: %s", exc)
            raise

        try:
            data = response.json()
        except ValueError as exc:
            current_app.logger.error("Failed to parse Gemini response as JSON: %s", exc)
            return None
        if not isinstance(data, dict):
            current_app.logger.error("Gemini response was not a JSON object: %s", str(data)[:500])
            return None

        text, finish_reason = self._extract_text_and_finish_reason(data)
        if not text:
            current_app.logger.error(
                "Gemini response contained empty text. Finish reason: %s, Full response: %s",
                finish_reason,
                str(data)[:500],
            )
            return None

        parsed = self._robust_parse_json(text)
        if parsed is None:
            current_app.logger.error(
                "Gemini JSON parsing failed. Text length: %s, First 500 chars: %s",
                len(text),
                text[:500],
            )
        return parsed

    def generate_json_or_raise(self, prompt: str, **kwargs) -> Any:
        """Like generate_json, but failures surface as typed scoring errors."""
        if not self.is_configured:
            raise ExternalServiceError("Gemini API not configured")
        try:
            parsed = self.generate_json(prompt, **kwargs)
        except requests.exceptions.Timeout as exc:
            raise ExternalServiceError(f"Gemini request timed out: {exc}") from exc
        except requests.exceptions.RequestException as exc:
            raise ExternalServiceError(f"Gemini request failed: {exc}") from exc
        if parsed is None:
            raise MalformedResponseError("Gemini returned no parseable JSON")
        return parsed

    @staticmethod
    def _parse_json_response(text: str) -> Optional[Any]:
        """Attempt to parse JSON payload even if wrapped in fences."""
        if not text:
            return None

        text = text.strip()

        # Handle markdown code fences
        if text.startswith("```"):
            parts = text.split("```")
            text = parts[1] if len(parts) > 1 else text
            if text.startswith("json"):
                text = text[4:]
            text = text.strip()

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            current_app.logger.debug("JSON decode error at position %s: %s", e.pos, e.msg)
            return None

    @staticmethod
    def _robust_parse_json(text: str) -> Optional[Any]:
        """Parse JSON, falling back to the outermost {...} block inside stray prose."""
        parsed = GeminiClient._parse_json_response(text)
        if parsed is not None:
            return parsed

        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            return None
        try:
            return json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            return None

    @staticmethod
    def _extract_text_and_finish_reason(data: Dict[str, Any]) -> tuple[str, Optional[str]]:
        """Return the first non-empty candidate text and its finish reason."""
        candidates = data.get("candidates") or []
        if not isinstance(candidates, list) or not candidates:
            prompt_feedback = data.get("promptFeedback")
            block_reason = prompt_feedback.get("blockReason") if isinstance(prompt_feedback, dict) else None
            if block_reason:
                current_app.logger.error("Gemini blocked request. Reason: %s", block_reason)
            else:
                current_app.logger.warning("Gemini response missing candidates. Full response: %s", data)
            return "", None

        fallback_finish: Optional[str] = None
        for cand in candidates:
            if not isinstance(cand, dict):
                continue
            finish_reason = cand.get("finishReason")
            if not fallback_finish:
                fallback_finish = finish_reason
            content = cand.get("content")
            parts = content.get("parts") if isinstance(content, dict) else None
            if not isinstance(parts, list):
                continue
            collected = [
                part["text"] for part in parts
                if isinstance(part, dict) and isinstance(part.get("text"), str) and part["text"].strip()
            ]
            if collected:
                return "".join(collected), finish_reason

        return "", fallback_finish


def get_gemini_client() -> GeminiClient:
    """Factory helper to allow lazy imports without circular references."""
    return GeminiClient()
