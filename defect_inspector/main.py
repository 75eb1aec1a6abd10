from __future__ import annotations

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .defect_analysis import (
    ConfigurationError,
    DefectAnalyzer,
    FormatError,
    TransportError,
)
from .defect_types import DefectType, OverallCondition
from .vision_providers import ImageInput, infer_image_media_type

defect_analyzer = DefectAnalyzer()

app = FastAPI(title="Building Defect Inspector", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class DetectedDefectBody(BaseModel):
    type: DefectType
    description: str
    confidence: float = Field(ge=0.0, le=1.0)


class AnalysisResultBody(BaseModel):
    overallCondition: OverallCondition
    summary: str
    defects: list[DetectedDefectBody] = Field(default_factory=list)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/defects/types")
async def list_defect_types():
    return {
        "defect_types": DefectType.values(),
        "overall_conditions": OverallCondition.values(),
        "provider": defect_analyzer.provider.availability(),
    }


@app.post("/api/defects/analyze", response_model=AnalysisResultBody)
async def analyze_building_image(image: UploadFile = File(...)):
    data = await image.read()
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded image is empty")

    mime_type = image.content_type
    if not mime_type or not mime_type.startswith("image/"):
        mime_type = infer_image_media_type(image.filename)

    try:
        result = await defect_analyzer.analyze(
            ImageInput(mime_type=mime_type, data=data, name=image.filename)
        )
    except ConfigurationError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except (TransportError, FormatError) as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return result.to_dict()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("defect_inspector.main:app", host="0.0.0.0", port=8000, reload=True)
