"""Shared fixtures for one_copy tests."""

import logging
from pathlib import Path

import pytest

from one_copy import AppConfig, ManifestStore, SyncEngine


def write_tree(root: Path, files: dict) -> None:
    """Create files under root from a {relative_path: bytes_or_text} mapping."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content)


def list_files(root: Path) -> set:
    return {p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file()}


@pytest.fixture
def dirs(tmp_path):
    """Input, output and data folders inside tmp_path."""
    src = tmp_path / "input"
    dst = tmp_path / "output"
    data = tmp_path / "data"
    src.mkdir()
    dst.mkdir()
    return src, dst, data


@pytest.fixture
def logger():
    log = logging.getLogger("one_copy_tests")
    log.setLevel(logging.DEBUG)
    log.propagate = True
    return log


@pytest.fixture
def make_engine(dirs, logger):
    """Build a SyncEngine over the dirs fixture with an initialized manifest."""
    src, dst, data = dirs

    def _make(**options):
        cfg = AppConfig(input_dir=src, output_dir=dst, data_dir=data, **options)
        manifest = ManifestStore(data)
        manifest.init()
        return SyncEngine(cfg, manifest, logger)

    return _make


@pytest.fixture
def write():
    return write_tree


@pytest.fixture
def files_in():
    return list_files
