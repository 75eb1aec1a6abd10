"""Installed distributions backing the service, the HTTP client and uploads."""
from __future__ import annotations

import importlib
from importlib import metadata

import pytest

# (distribution on the index, import name)
REQUIRED_DISTRIBUTIONS = [
    ("fastapi", "fastapi"),
    ("uvicorn", "uvicorn"),
    ("python-multipart", "multipart"),
    ("pydantic", "pydantic"),
    ("httpx", "httpx"),
]


@pytest.mark.parametrize("distribution, module_name", REQUIRED_DISTRIBUTIONS)
def test_required_distribution_is_installed_and_importable(distribution: str, module_name: str):
    assert metadata.version(distribution)
    importlib.import_module(module_name)


def test_pydantic_is_v2():
    major = int(metadata.version("pydantic").split(".")[0])

    assert major >= 2
