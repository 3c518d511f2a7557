from __future__ import annotations

import hashlib
from datetime import datetime
from pathlib import Path

import pandas as pd
import pytest

from firm_enrich.io import input_digest, write_json, write_text


def test_write_text_creates_parents_and_leaves_no_temp(tmp_path: Path) -> None:
    path = tmp_path / "a" / "b" / "summary.txt"

    out = write_text(path, "hello\n")

    assert out == path
    assert path.read_text(encoding="utf-8") == "hello\n"
    assert not path.with_suffix(path.suffix + ".tmp").exists()


def test_write_text_overwrites_existing_file(tmp_path: Path) -> None:
    path = tmp_path / "summary.txt"
    path.write_text("old", encoding="utf-8")

    write_text(path, "new")

    assert path.read_text(encoding="utf-8") == "new"


def test_write_json_is_atomic_and_deterministic(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "artifact.json"
    payload = {
        "b": 1,
        "a": datetime(2024, 1, 2, 3, 4, 5),
        "path": Path("foo/bar"),
    }

    out = write_json(path, payload)

    assert out == path
    text = path.read_text(encoding="utf-8")
    assert text.endswith("\n")
    assert '"a": "2024-01-02T03:04:05"' in text
    assert '"path": "foo/bar"' in text
    assert text.index('"a"') < text.index('"b"') < text.index('"path"')
    assert not path.with_suffix(path.suffix + ".tmp").exists()


def test_write_json_keeps_non_ascii_firm_names(tmp_path: Path) -> None:
    path = tmp_path / "artifact.json"

    write_json(path, {"firm": "Ardian Société"})

    assert "Ardian Société" in path.read_text(encoding="utf-8")


def test_write_json_serializes_item_scalar(tmp_path: Path) -> None:
    path = tmp_path / "artifact.json"
    value = pd.Series([7], dtype="int64").iloc[0]

    write_json(path, {"value": value})

    text = path.read_text(encoding="utf-8")
    assert '"value": 7' in text


def test_write_json_raises_on_unknown_type(tmp_path: Path) -> None:
    class Unknown:
        pass

    path = tmp_path / "artifact.json"

    with pytest.raises(TypeError, match="not JSON serializable"):
        write_json(path, {"x": Unknown()})


def test_input_digest_matches_sha256(tmp_path: Path) -> None:
    path = tmp_path / "firms.xlsx"
    payload = b"x" * 200_000
    path.write_bytes(payload)

    assert input_digest(path) == hashlib.sha256(payload).hexdigest()
