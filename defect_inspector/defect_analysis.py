from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any

from .defect_types import AnalysisResult, DefectType, OverallCondition
from .vision_providers import (
    GeminiVisionProvider,
    ImageInput,
    VisionProviderError,
    VisionProviderResponseError,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
INVALID_FORMAT_MESSAGE = "The API returned an invalid response format."

_LEADING_FENCE_RE = re.compile(r"^```(?:json)?\s*", flags=re.IGNORECASE)
_TRAILING_FENCE_RE = re.compile(r"\s*```$")


def _quoted(values: list[str]) -> str:
    return ", ".join(f'"{value}"' for value in values)


DEFECT_ANALYSIS_PROMPT = (
    "You are an expert structural engineer specializing in building inspection and defect "
    "detection. Your task is to analyze the provided image of a building and identify any "
    "potential defects.\n\n"
    "Based on your analysis, provide a JSON response that strictly adheres to the provided "
    "schema.\n\n"
    f"The possible defect categories are: {_quoted(DefectType.values())}.\n\n"
    "First, determine the 'overallCondition' of the building in the image, which can be either "
    "\"Normal\" or \"Damaged\".\n"
    "Provide a concise 'summary' of your findings.\n"
    "Then, for each defect you identify, create an object in the 'defects' array with the "
    "'type', 'description', and your 'confidence' level (from 0.0 to 1.0).\n\n"
    "If the building appears to be in normal condition with no visible defects, return "
    "\"Normal\" for 'overallCondition', a summary stating it's in good condition, and an empty "
    "'defects' array."
)


class DefectAnalysisError(RuntimeError):
    pass


class ConfigurationError(DefectAnalysisError):
    pass


class TransportError(DefectAnalysisError):
    pass


class FormatError(DefectAnalysisError):
    def __init__(self, message: str = INVALID_FORMAT_MESSAGE, *, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text


def build_response_schema() -> dict[str, Any]:
    return {
        "type": "OBJECT",
        "properties": {
            "overallCondition": {
                "type": "STRING",
                "enum": OverallCondition.values(),
                "description": "The overall condition of the building.",
            },
            "summary": {
                "type": "STRING",
                "description": "A brief summary of the findings.",
            },
            "defects": {
                "type": "ARRAY",
                "items": {
                    "type": "OBJECT",
                    "properties": {
                        "type": {
                            "type": "STRING",
                            "enum": DefectType.values(),
                            "description": "The category of the defect.",
                        },
                        "description": {
                            "type": "STRING",
                            "description": "A detailed description of the observed defect.",
                        },
                        "confidence": {
                            "type": "NUMBER",
                            "description": "Confidence score from 0.0 to 1.0.",
                        },
                    },
                    "required": ["type", "description", "confidence"],
                },
            },
        },
        "required": ["overallCondition", "summary", "defects"],
    }


@dataclass(frozen=True)
class AnalysisConfig:
    model: str = DEFAULT_MODEL
    prompt: str = DEFECT_ANALYSIS_PROMPT
    response_schema: dict[str, Any] = field(default_factory=build_response_schema)

    @classmethod
    def from_env(cls) -> "AnalysisConfig":
        model = (os.getenv("DEFECT_ANALYSIS_MODEL") or "").strip()
        return cls(model=model or DEFAULT_MODEL)


def strip_code_fence(text: str) -> str:
    """Remove an optional ```json ... ``` wrapper around a model reply."""
    stripped = text.strip()
    stripped = _LEADING_FENCE_RE.sub("", stripped, count=1)
    stripped = _TRAILING_FENCE_RE.sub("", stripped, count=1)
    return stripped.strip()


def parse_analysis_text(text: str) -> AnalysisResult:
    cleaned = strip_code_fence(text)
    try:
        payload = json.loads(cleaned)
        return AnalysisResult.from_payload(payload)
    except (ValueError, RecursionError) as exc:
        logger.error("Failed to parse JSON response (%s): %s", exc, text)
        raise FormatError(raw_text=text) from exc


class DefectAnalyzer:
    """Turns one building photo into an ``AnalysisResult`` with a single model call.

    Each ``analyze`` call is independent: no retries, no caching and no state
    shared between concurrent calls.
    """

    def __init__(
        self,
        *,
        config: AnalysisConfig | None = None,
        provider: GeminiVisionProvider | None = None,
    ) -> None:
        self.config = config or AnalysisConfig.from_env()
        self.provider = provider or GeminiVisionProvider.from_env(default_model=self.config.model)

    async def analyze(self, image: ImageInput) -> AnalysisResult:
        if not self.provider.configured:
            raise ConfigurationError("GEMINI_API_KEY or API_KEY environment variable not set")

        try:
            result = await self.provider.generate(
                prompt=self.config.prompt,
                image=image,
                model=self.config.model,
                response_schema=self.config.response_schema,
            )
        except VisionProviderResponseError as exc:
            logger.error("Unusable provider response (%s): %s", exc, exc.raw_text)
            raise FormatError(raw_text=exc.raw_text) from exc
        except VisionProviderError as exc:
            raise TransportError(str(exc)) from exc

        analysis = parse_analysis_text(result.text)
        logger.debug(
            "Analysis finished with model %s: %s, %d defect(s)",
            result.model_used,
            analysis.overall_condition.value,
            len(analysis.defects),
        )
        return analysis
