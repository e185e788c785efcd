from pathlib import Path

import pytest

from superplan.engine.utils import artifact_path, content_hash, read_mapping, write_yaml
from superplan.engine.utils.io import ensure_dir, safe_path_segment


def test_artifact_path_creates_directory(tmp_path: Path) -> None:
    root = tmp_path / "artifacts"
    path = artifact_path("reports", "summary.json", root=root)
    assert path.parent.exists()
    assert path.parent == root / "reports"


def test_content_hash_ignores_key_order() -> None:
    assert content_hash({"a": 1, "b": [1, 2]}) == content_hash({"b": [1, 2], "a": 1})
    assert content_hash({"a": 1}) != content_hash({"a": 2})


def test_read_mapping_unwraps_section(tmp_path: Path) -> None:
    path = write_yaml({"baseline": {"planning_age": 95}}, tmp_path / "baseline.yml")
    assert read_mapping(path, section="baseline") == {"planning_age": 95}
    assert read_mapping(path) == {"baseline": {"planning_age": 95}}


def test_read_mapping_rejects_lists(tmp_path: Path) -> None:
    path = tmp_path / "list.yml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError, match="must contain a mapping"):
        read_mapping(path, section="baseline")


def test_safe_path_segment_replaces_invalid_characters(tmp_path: Path) -> None:
    unsafe = "early:retirement"
    safe = safe_path_segment(unsafe)
    assert ":" not in safe
    assert safe == "early-retirement"

    created = ensure_dir(tmp_path / safe)
    assert created.exists()
    assert created.name == safe


def test_safe_path_segment_strips_trailing_dots_and_spaces() -> None:
    unsafe = "report ."
    safe = safe_path_segment(unsafe)
    assert safe == "report"
