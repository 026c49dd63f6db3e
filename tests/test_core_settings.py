"""Tests for core.settings helpers."""

from __future__ import annotations

import json
from pathlib import Path

from core.settings import SETTINGS_VERSION, load_settings, merge_defaults, save_settings, update_settings


def test_merge_defaults_includes_grooming_blocks() -> None:
    merged = merge_defaults({})

    assert merged["grooming"] == {"retain_count": None, "retain_size_bytes": None, "ignore_errors": False}
    assert merged["export"]["compression"] is True
    assert merged["export"]["zip_buffer_bytes"] == 512 * 1024
    assert merged["report"]["null_value"] == "(not available)"


def test_merge_defaults_keeps_user_values() -> None:
    merged = merge_defaults({"export": {"compression": False}, "custom": 1})

    assert merged["export"]["compression"] is False
    assert merged["export"]["update_catalog_path"] is False
    assert merged["custom"] == 1


def test_load_settings_migrates_gigabyte_limit(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"version": 1, "grooming": {"retain_size_gb": 2}}), encoding="utf-8")

    loaded = load_settings(tmp_path)

    assert loaded["version"] == SETTINGS_VERSION
    assert loaded["grooming"]["retain_size_bytes"] == 2 * 1024 ** 3
    assert "retain_size_gb" not in loaded["grooming"]
    assert loaded["working_dir"] == str(tmp_path)


def test_unknown_keys_are_reported(tmp_path: Path) -> None:
    (tmp_path / "settings.json").write_text(
        json.dumps({"grooming": {"retain_cnt": 3}, "mail": {}}), encoding="utf-8"
    )

    load_settings(tmp_path)

    report = json.loads((tmp_path / "logs" / "settings_unknown.json").read_text(encoding="utf-8"))
    assert report["unknown"] == ["grooming.retain_cnt", "mail"]


def test_save_and_update_round_trip(tmp_path: Path) -> None:
    save_settings({"grooming": {"retain_count": 4}}, tmp_path)
    update_settings(tmp_path, report={"null_value": "-"})

    stored = json.loads((tmp_path / "settings.json").read_text(encoding="utf-8"))
    assert stored["grooming"]["retain_count"] == 4
    assert stored["report"]["null_value"] == "-"
    assert stored["report"]["subject_template"] == "Backup status for {catalog_path}"
