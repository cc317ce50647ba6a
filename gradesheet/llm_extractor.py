#!/usr/bin/env python3
"""
LLM Grade Extractor - Ask a language model to read rows off a grade sheet.

Supports two providers:
- openrouter: OpenAI-compatible chat completions, text or image input
- ollama: local /api/generate endpoint

This is a best-effort capability. Callers treat any exception or
unusable response as "no rows" and fall back to the text parser.
"""

import re
import json
import logging
from typing import Optional, List, Dict, Any

import requests

from config import LLMConfig

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a precise OCR extraction assistant for school grade sheets. Return only valid JSON."

# OCR text beyond this is not sent to the model
MAX_TEXT_CHARS = 9000

_IMAGE_DATA_URL_RE = re.compile(r"^data:image/[\w.+-]+;base64,", re.IGNORECASE)


def is_image_data_url(value: str) -> bool:
    """Check whether a value is a base64 image data URL."""
    return bool(_IMAGE_DATA_URL_RE.match(str(value or "").strip()))


def extract_json_payload(text: str) -> Optional[Any]:
    """
    Recover a JSON document from model output.

    Tries the whole text, then the outermost [...] and {...} spans,
    whichever opens first.

    Returns:
        Parsed JSON value, or None
    """
    text = str(text or "").strip()
    if not text:
        return None

    try:
        return json.loads(text)
    except ValueError:
        pass

    spans = []
    for opener, closer in (("[", "]"), ("{", "}")):
        start = text.find(opener)
        end = text.rfind(closer)
        if start >= 0 and end > start:
            spans.append((start, end))

    for start, end in sorted(spans):
        try:
            return json.loads(text[start:end + 1])
        except ValueError:
            continue

    return None


def build_prompt(expected_columns: List[str], default_max_marks: float) -> str:
    """Build the extraction instructions sent with every request."""
    return "\n".join([
        "Extract grade sheet rows from the provided data.",
        "Return only JSON in this exact format:",
        '{"columns": ["name", "score", "max"], "rows": [{"studentName": "", "score": 0, "maxMarks": 100}], "notes": []}',
        f"Expected columns: {', '.join(expected_columns)}.",
        "Rules:",
        "- Detect Arabic and English column names.",
        "- Preserve student names exactly as shown.",
        "- Score fields must be numeric when possible.",
        "- If value looks like 17/20, return score=17 and maxMarks=20.",
        f"- Use {default_max_marks:g} as default maxMarks when missing.",
        "- Ignore non-grade rows and headers.",
    ])


class LLMGradeExtractor:
    """
    Grade sheet extraction through an LLM provider.

    Usage:
        extractor = LLMGradeExtractor(config.llm)
        payload = extractor.extract(ocr_text, "", ["Student Name", "Score"], 20)
    """

    def __init__(self, config: LLMConfig, session: Optional[requests.Session] = None):
        """
        Initialize the extractor.

        Args:
            config: LLM provider configuration
            session: Optional requests session (for connection reuse)
        """
        if not config.is_valid():
            raise ValueError(
                f"LLM provider '{config.provider}' is not configured. "
                "Set OPENROUTER_API_KEY or LLM_PROVIDER=ollama."
            )
        self.config = config
        self.session = session or requests.Session()

    def extract(
        self,
        text: str,
        image_data_url: str,
        expected_columns: List[str],
        default_max_marks: float,
    ) -> Optional[Dict[str, Any]]:
        """
        Extract rows from OCR text and/or an image.

        Args:
            text: OCR or pasted text (may be empty)
            image_data_url: data:image/... URL (may be empty)
            expected_columns: Column names the caller expects
            default_max_marks: Maximum to assume when a row has none

        Returns:
            Parsed JSON payload from the model, or None when there is nothing to send

        Raises:
            requests.RequestException: On HTTP failure or timeout
        """
        has_text = bool(str(text or "").strip())
        has_image = is_image_data_url(image_data_url)

        if not has_text and not has_image:
            return None

        prompt = build_prompt(expected_columns, default_max_marks)

        if self.config.provider == "ollama":
            output = self._call_ollama(prompt, text if has_text else "", image_data_url if has_image else "")
        else:
            output = self._call_openrouter(prompt, text if has_text else "", image_data_url if has_image else "")

        payload = extract_json_payload(output)
        if payload is None:
            logger.warning("LLM extraction returned no parseable JSON")
        return payload

    def _call_openrouter(self, prompt: str, text: str, image_data_url: str) -> str:
        """Send a chat completion request to OpenRouter."""
        provider = self.config.get_provider_config()

        content = [{"type": "text", "text": prompt}]
        if text:
            content.append({"type": "text", "text": f"OCR text:\n{text[:MAX_TEXT_CHARS]}"})
        if image_data_url:
            content.append({"type": "image_url", "image_url": {"url": image_data_url}})

        response = self.session.post(
            f"{provider['base_url'].rstrip('/')}/chat/completions",
            headers={
                "Authorization": f"Bearer {provider['api_key']}",
                "Content-Type": "application/json",
                "HTTP-Referer": self.config.site_url,
                "X-Title": "Grade Sheet Import",
            },
            json={
                "model": provider["vision_model"] if image_data_url else provider["model"],
                "temperature": 0,
                "max_tokens": 1200,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": content},
                ],
            },
            timeout=self.config.timeout,
        )
        response.raise_for_status()

        choices = response.json().get("choices") or [{}]
        return str((choices[0].get("message") or {}).get("content") or "").strip()

    def _call_ollama(self, prompt: str, text: str, image_data_url: str) -> str:
        """Send a generate request to a local Ollama server."""
        provider = self.config.get_provider_config()

        body = {
            "model": provider["model"],
            "system": SYSTEM_PROMPT,
            "prompt": f"{prompt}\n\nOCR text:\n{text[:MAX_TEXT_CHARS]}" if text else prompt,
            "stream": False,
            "format": "json",
        }
        if image_data_url:
            body["images"] = [_IMAGE_DATA_URL_RE.sub("", image_data_url.strip())]

        response = self.session.post(
            provider["url"],
            json=body,
            headers={"Content-Type": "application/json"},
            timeout=self.config.timeout,
        )
        response.raise_for_status()
        return str(response.json().get("response", "")).strip()


def create_llm_extractor(config: LLMConfig) -> Optional[LLMGradeExtractor]:
    """
    Create an extractor if the provider is configured.

    Returns:
        LLMGradeExtractor, or None when no provider is available
    """
    if not config.is_valid():
        logger.info(f"LLM provider '{config.provider}' not configured; using text parser only")
        return None
    return LLMGradeExtractor(config)
