#!/usr/bin/env python3
"""Analyze one building photo and print the defect report as JSON."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from defect_inspector.defect_analysis import (  # noqa: E402
    AnalysisConfig,
    DefectAnalysisError,
    DefectAnalyzer,
)
from defect_inspector.vision_providers import ImageInput, VisionProviderError  # noqa: E402


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Detect building defects in a photo using a hosted multimodal model.",
    )
    parser.add_argument("image", type=Path, help="Path to the building photo.")
    parser.add_argument(
        "--model",
        default=None,
        help="Model id override (defaults to DEFECT_ANALYSIS_MODEL or gemini-2.5-flash).",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not args.image.exists():
        raise SystemExit(f"Image not found: {args.image}")

    config = AnalysisConfig.from_env()
    if args.model:
        config = AnalysisConfig(model=args.model)

    try:
        image = ImageInput.from_path(args.image)
        result = asyncio.run(DefectAnalyzer(config=config).analyze(image))
    except (DefectAnalysisError, VisionProviderError) as exc:
        print(f"Analysis failed: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(result.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
