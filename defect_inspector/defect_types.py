from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class DefectType(str, Enum):
    CRACKS = "Cracks"
    CONCRETE_SPALLING = "ConcreteSpalling"
    PLASTER_AND_FINISH_DEFECTS = "PlasterAndFinishDefects"
    WINDOW_AND_DOOR_DEFECTS = "WindowAndDoorDefects"
    FLAWED_OVERALL_DESIGN = "FlawedOverallDesign"
    OTHER = "Other"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


class OverallCondition(str, Enum):
    NORMAL = "Normal"
    DAMAGED = "Damaged"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


@dataclass(frozen=True)
class DetectedDefect:
    type: DefectType
    description: str
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "description": self.description,
            "confidence": self.confidence,
        }

    @classmethod
    def from_payload(cls, payload: Any, *, index: int = 0) -> "DetectedDefect":
        label = f"defects[{index}]"
        if not isinstance(payload, dict):
            raise ValueError(f"{label} must be an object.")

        raw_type = payload.get("type")
        try:
            defect_type = DefectType(raw_type)
        except ValueError as exc:
            raise ValueError(
                f"{label}.type must be one of: {', '.join(DefectType.values())}"
            ) from exc

        description = payload.get("description")
        if not isinstance(description, str):
            raise ValueError(f"{label}.description must be a string.")

        confidence = payload.get("confidence")
        # bool is an int subclass; JSON true/false is not a confidence.
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            raise ValueError(f"{label}.confidence must be a number.")
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"{label}.confidence must be between 0.0 and 1.0.")

        return cls(
            type=defect_type,
            description=description,
            confidence=float(confidence),
        )


@dataclass(frozen=True)
class AnalysisResult:
    """Structured defect report for one building photo.

    A ``Normal`` result is expected to carry no defects, but that is only
    requested from the model and is not checked here.
    """

    overall_condition: OverallCondition
    summary: str
    defects: tuple[DetectedDefect, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "overallCondition": self.overall_condition.value,
            "summary": self.summary,
            "defects": [defect.to_dict() for defect in self.defects],
        }

    @classmethod
    def from_payload(cls, payload: Any) -> "AnalysisResult":
        if not isinstance(payload, dict):
            raise ValueError("Analysis result must be a JSON object.")

        try:
            overall_condition = OverallCondition(payload.get("overallCondition"))
        except ValueError as exc:
            raise ValueError(
                f"overallCondition must be one of: {', '.join(OverallCondition.values())}"
            ) from exc

        summary = payload.get("summary")
        if not isinstance(summary, str):
            raise ValueError("summary must be a string.")

        raw_defects = payload.get("defects")
        if not isinstance(raw_defects, list):
            raise ValueError("defects must be an array.")

        defects = tuple(
            DetectedDefect.from_payload(item, index=index)
            for index, item in enumerate(raw_defects)
        )
        return cls(
            overall_condition=overall_condition,
            summary=summary,
            defects=defects,
        )
