from __future__ import annotations

from pathlib import Path

import pytest

from lobcross.utils.yaml_safe import YAMLSafetyError, load_mapping, safe_load_path


def test_safe_load_path_wraps_errors(tmp_path: Path) -> None:
    file_path = tmp_path / "config.yaml"
    file_path.write_text(
        "!!python/object/apply:os.system ['echo hi']", encoding="utf-8"
    )
    with pytest.raises(YAMLSafetyError) as exc:
        safe_load_path(file_path)
    assert str(file_path) in str(exc.value)
    assert exc.value.path == file_path

    clean_path = tmp_path / "simple.yaml"
    clean_path.write_text("answer: 42", encoding="utf-8")
    assert safe_load_path(clean_path) == {"answer": 42}


def test_missing_file_is_reported(tmp_path: Path) -> None:
    with pytest.raises(YAMLSafetyError, match="not found"):
        safe_load_path(tmp_path / "absent.yaml")


def test_load_mapping_requires_mapping(tmp_path: Path) -> None:
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    assert load_mapping(empty) == {}

    listing = tmp_path / "list.yaml"
    listing.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(YAMLSafetyError, match="mapping"):
        load_mapping(listing)
