from __future__ import annotations

import base64
import json
import logging
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_TIMEOUT_SECONDS = 90.0


class VisionProviderError(RuntimeError):
    pass


class VisionProviderResponseError(VisionProviderError):
    """The provider answered, but the envelope carried no usable text."""

    def __init__(self, message: str, *, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text


@dataclass(frozen=True)
class ImageInput:
    mime_type: str
    data: bytes
    name: str | None = None

    @classmethod
    def from_path(cls, path: Path) -> "ImageInput":
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise VisionProviderError(f"Failed to read image '{path.name}': {exc}") from exc
        return cls(
            mime_type=infer_image_media_type(path.name),
            data=data,
            name=path.name,
        )

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass
class VisionProviderResult:
    text: str
    raw_response: Any
    model_used: str
    request_metadata: dict[str, Any]


class GeminiVisionProvider:
    route_id = "gemini"
    label = "Google Gemini"

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = DEFAULT_GEMINI_BASE_URL,
        default_model: str = "",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key.strip()
        self.base_url = base_url.strip().rstrip("/")
        self.default_model = default_model.strip()
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    @classmethod
    def from_env(cls, *, default_model: str = "") -> "GeminiVisionProvider":
        timeout_seconds = _parse_timeout_seconds(
            os.getenv("VISION_REQUEST_TIMEOUT_SECONDS"),
            fallback=DEFAULT_TIMEOUT_SECONDS,
        )
        return cls(
            api_key=os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY") or "",
            base_url=os.getenv("GEMINI_BASE_URL", DEFAULT_GEMINI_BASE_URL),
            default_model=default_model,
            timeout_seconds=timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def availability(self) -> dict[str, Any]:
        return {
            "id": self.route_id,
            "label": self.label,
            "configured": bool(self.configured),
            "default_model": self.default_model,
        }

    async def generate(
        self,
        *,
        prompt: str,
        image: ImageInput,
        model: str | None = None,
        response_schema: dict[str, Any] | None = None,
    ) -> VisionProviderResult:
        if not self.api_key:
            raise VisionProviderError(
                "Gemini provider is not configured (missing GEMINI_API_KEY or API_KEY)."
            )

        model_used = (model or self.default_model).strip()
        if not model_used:
            raise VisionProviderError("Gemini provider is not configured (missing model).")

        if not self.base_url.startswith("http"):
            raise VisionProviderError("Invalid Gemini base URL.")

        request_payload = build_generate_content_payload(
            prompt=prompt,
            image=image,
            response_schema=response_schema,
        )
        url = f"{self.base_url}/models/{model_used}:generateContent"
        logger.info("Requesting %s analysis of %s (%s)", model_used, image.name or "image", image.mime_type)

        response = await self._post_json(url=url, request_payload=request_payload)
        if not response.is_success:
            detail = _extract_error_detail(response)
            raise VisionProviderError(f"Gemini request failed ({response.status_code}): {detail}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise VisionProviderResponseError(
                f"Gemini response was not valid JSON: {exc}",
                raw_text=response.text,
            ) from exc

        text = _extract_gemini_text(payload)
        return VisionProviderResult(
            text=text,
            raw_response=payload,
            model_used=model_used,
            request_metadata={
                "provider": self.route_id,
                "endpoint": url,
                "model": model_used,
                "mime_type": image.mime_type,
                "image_bytes": len(image.data),
            },
        )

    async def _post_json(self, *, url: str, request_payload: dict[str, Any]) -> httpx.Response:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": "DefectInspector/1.0",
            "x-goog-api-key": self.api_key,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                transport=self.transport,
            ) as client:
                return await client.post(url, headers=headers, json=request_payload)
        except httpx.HTTPError as exc:
            raise VisionProviderError(f"HTTP request failed: {exc}") from exc


def build_generate_content_payload(
    *,
    prompt: str,
    image: ImageInput,
    response_schema: dict[str, Any] | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "contents": [
            {
                "parts": [
                    {
                        "inline_data": {
                            "mime_type": image.mime_type,
                            "data": image.to_base64(),
                        }
                    },
                    {"text": prompt},
                ]
            }
        ],
    }
    if response_schema is not None:
        payload["generationConfig"] = {
            "responseMimeType": "application/json",
            "responseSchema": response_schema,
        }
    return payload


def infer_image_media_type(filename: str | None) -> str:
    guessed_type, _ = mimetypes.guess_type(filename or "")
    if isinstance(guessed_type, str) and guessed_type.startswith("image/"):
        return guessed_type
    return "image/png"


def _parse_timeout_seconds(raw_value: str | None, *, fallback: float) -> float:
    if raw_value is None:
        return fallback
    try:
        parsed = float(raw_value)
    except ValueError:
        return fallback
    if parsed <= 0:
        return fallback
    return parsed


def _extract_gemini_text(payload: Any) -> str:
    raw_text = json.dumps(payload)
    if not isinstance(payload, dict):
        raise VisionProviderResponseError("Invalid Gemini response payload.", raw_text=raw_text)

    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        block_reason = None
        feedback = payload.get("promptFeedback")
        if isinstance(feedback, dict):
            block_reason = feedback.get("blockReason")
        if block_reason:
            raise VisionProviderResponseError(
                f"Gemini blocked the request ({block_reason}).",
                raw_text=raw_text,
            )
        raise VisionProviderResponseError(
            "Gemini response does not contain candidates.",
            raw_text=raw_text,
        )

    candidate = candidates[0] if isinstance(candidates[0], dict) else {}
    content = candidate.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    chunks: list[str] = []
    if isinstance(parts, list):
        for item in parts:
            if isinstance(item, dict) and isinstance(item.get("text"), str):
                chunks.append(item["text"])
    if not chunks:
        finish_reason = candidate.get("finishReason") or "unknown"
        raise VisionProviderResponseError(
            f"Gemini response did not include text content (finishReason={finish_reason}).",
            raw_text=raw_text,
        )
    return "".join(chunks)


def _extract_error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message
        detail = payload.get("detail")
        if isinstance(detail, str) and detail:
            return detail
    body = response.text.strip()
    return body[:300] if body else "Unknown provider error"
