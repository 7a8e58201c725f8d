# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for class relationship analysis tests."""

from pathlib import Path
from typing import Callable, Dict

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures" / "cross_file"


@pytest.fixture
def fixtures_dir() -> Path:
    """Root of the TypeScript fixture projects."""
    return FIXTURES_DIR


@pytest.fixture
def write_project(tmp_path: Path) -> Callable[[Dict[str, str]], Path]:
    """Factory writing a throwaway project from {relative path: content}."""

    def _write(files: Dict[str, str]) -> Path:
        for rel_path, content in files.items():
            file_path = tmp_path / rel_path
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(content, encoding="utf-8")
        return tmp_path

    return _write
