from __future__ import annotations

import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from defect_inspector.defect_types import (  # noqa: E402
    AnalysisResult,
    DefectType,
    DetectedDefect,
    OverallCondition,
)


def _damaged_payload() -> dict:
    return {
        "overallCondition": "Damaged",
        "summary": "Cracking and spalling observed.",
        "defects": [
            {"type": "Cracks", "description": "Diagonal crack near window", "confidence": 0.82},
            {"type": "ConcreteSpalling", "description": "Exposed rebar at balcony", "confidence": 1},
            {"type": "Other", "description": "Stained facade", "confidence": 0.0},
        ],
    }


def test_defect_type_values_cover_the_taxonomy_in_order():
    assert DefectType.values() == [
        "Cracks",
        "ConcreteSpalling",
        "PlasterAndFinishDefects",
        "WindowAndDoorDefects",
        "FlawedOverallDesign",
        "Other",
    ]
    assert OverallCondition.values() == ["Normal", "Damaged"]


def test_from_payload_builds_typed_result_and_keeps_defect_order():
    result = AnalysisResult.from_payload(_damaged_payload())

    assert result.overall_condition is OverallCondition.DAMAGED
    assert result.summary == "Cracking and spalling observed."
    assert [defect.type for defect in result.defects] == [
        DefectType.CRACKS,
        DefectType.CONCRETE_SPALLING,
        DefectType.OTHER,
    ]
    assert result.defects[1].confidence == 1.0
    assert isinstance(result.defects[1].confidence, float)


def test_to_dict_renders_camel_case_document():
    payload = _damaged_payload()
    result = AnalysisResult.from_payload(payload)

    rendered = result.to_dict()

    assert rendered["overallCondition"] == "Damaged"
    assert rendered["defects"][0] == {
        "type": "Cracks",
        "description": "Diagonal crack near window",
        "confidence": 0.82,
    }
    assert AnalysisResult.from_payload(rendered) == result


def test_from_payload_ignores_unknown_keys():
    payload = {
        "overallCondition": "Normal",
        "summary": "Building is in good condition.",
        "defects": [],
        "notes": "extra",
    }

    result = AnalysisResult.from_payload(payload)

    assert result == AnalysisResult(
        overall_condition=OverallCondition.NORMAL,
        summary="Building is in good condition.",
        defects=(),
    )


@pytest.mark.parametrize(
    "mutation, message",
    [
        ({"overallCondition": "Ruined"}, "overallCondition"),
        ({"summary": None}, "summary"),
        ({"defects": {"type": "Cracks"}}, "defects must be an array"),
        ({"defects": ["crack"]}, "defects[0] must be an object"),
        ({"defects": [{"type": "Mold", "description": "x", "confidence": 0.5}]}, "defects[0].type"),
        ({"defects": [{"type": "Cracks", "description": 3, "confidence": 0.5}]}, "defects[0].description"),
        ({"defects": [{"type": "Cracks", "description": "x", "confidence": "high"}]}, "defects[0].confidence"),
        ({"defects": [{"type": "Cracks", "description": "x", "confidence": True}]}, "defects[0].confidence"),
        ({"defects": [{"type": "Cracks", "description": "x", "confidence": 1.5}]}, "between 0.0 and 1.0"),
        ({"defects": [{"type": "Cracks", "description": "x", "confidence": -0.1}]}, "between 0.0 and 1.0"),
    ],
)
def test_from_payload_rejects_malformed_fields(mutation: dict, message: str):
    payload = _damaged_payload()
    payload.update(mutation)

    with pytest.raises(ValueError) as exc_info:
        AnalysisResult.from_payload(payload)

    assert message in str(exc_info.value)


def test_from_payload_rejects_non_object_documents():
    with pytest.raises(ValueError):
        AnalysisResult.from_payload([_damaged_payload()])


def test_detected_defect_is_immutable():
    defect = DetectedDefect(type=DefectType.CRACKS, description="Hairline crack", confidence=0.4)

    with pytest.raises(AttributeError):
        defect.confidence = 0.9  # type: ignore[misc]
