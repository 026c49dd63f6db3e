import json
import zipfile

import pytest

from catalog.errors import InvalidParametersError, NotACatalogError
from grooming.api import CatalogService

from catalog_fixtures import Run, build_catalog, diff, full, run_numbers


def _service(tmp_path, **settings):
    return CatalogService(working_dir=tmp_path / "work", settings=settings)


def _alternating():
    return [(full if number % 2 else diff)(number) for number in range(1, 9)]


def test_open_catalog_rejects_folder_without_index(tmp_path):
    service = _service(tmp_path)
    (tmp_path / "empty").mkdir()

    with pytest.raises(NotACatalogError):
        service.open_catalog(tmp_path / "empty")


def test_groom_requires_a_limit(tmp_path):
    root = build_catalog(tmp_path / "farm", _alternating())
    service = _service(tmp_path)

    with pytest.raises(InvalidParametersError):
        service.groom(root)
    with pytest.raises(InvalidParametersError):
        service.groom(root, retain_count=0)
    with pytest.raises(InvalidParametersError):
        service.groom(root, retain_size=-5)
    assert run_numbers(root) == list(range(1, 9))


def test_groom_by_count_then_size(tmp_path):
    root = build_catalog(tmp_path / "farm", _alternating())
    service = _service(tmp_path)

    result = service.groom(root, retain_count=3, retain_size=0)

    assert result.count is not None
    assert sorted(result.count.removed_numbers) == [1, 2]
    assert result.size is not None
    assert sorted(result.size.removed_numbers) == [3, 4, 5, 6]
    assert sorted(result.removed_numbers) == [1, 2, 3, 4, 5, 6]
    assert run_numbers(root) == [7, 8]
    lines = (tmp_path / "work" / "logs" / "grooming.jsonl").read_text(encoding="utf-8").splitlines()
    events = [json.loads(line)["event"] for line in lines]
    assert "index_saved" in events
    assert "trim_applied" in events
    assert {json.loads(line)["catalog"] for line in lines} == {str(root)}


def test_groom_skips_passes_within_limits(tmp_path):
    root = build_catalog(tmp_path / "farm", _alternating())
    service = _service(tmp_path)

    result = service.groom(root, retain_count=4, retain_size=10 ** 9)

    assert result.count is None
    assert result.size is None
    assert run_numbers(root) == list(range(1, 9))


def test_groom_falls_back_to_settings(tmp_path):
    root = build_catalog(tmp_path / "farm", _alternating())
    service = _service(tmp_path, grooming={"retain_count": 1})

    result = service.groom(root)

    assert sorted(result.removed_numbers) == [1, 2, 3, 4, 5, 6]


def test_purge_through_service(tmp_path):
    root = build_catalog(tmp_path / "farm", [full(1), Run(2, is_backup=False), diff(3)])

    summary = _service(tmp_path).purge(root)

    assert sorted(summary.removed_numbers) == [1, 3]
    assert run_numbers(root) == [2]


def test_export_rejects_both_counts(tmp_path):
    root = build_catalog(tmp_path / "farm", _alternating())
    dest = tmp_path / "out"
    dest.mkdir()
    service = _service(tmp_path)

    with pytest.raises(InvalidParametersError):
        service.export(root, dest, "x", include_count=1, exclude_count=1)
    with pytest.raises(InvalidParametersError):
        service.export(root, dest, "x", include_count=0)
    assert list(dest.iterdir()) == []


def test_export_uses_settings_defaults(tmp_path):
    root = build_catalog(tmp_path / "farm", _alternating())
    dest = tmp_path / "out"
    dest.mkdir()
    service = _service(tmp_path, export={"compression": False, "name_template": "farm_{stamp}"})

    result = service.export(root, dest, exclude_count=3)

    assert result.compressed is False
    assert result.target.parent == dest
    assert result.target.name.startswith("farm_")
    assert result.exported == [1, 2]


def test_export_compressed_with_include_count(tmp_path):
    root = build_catalog(tmp_path / "farm", _alternating())
    dest = tmp_path / "out"
    dest.mkdir()

    result = _service(tmp_path).export(root, dest, "oldest", include_count=1)

    assert result.target == dest / "oldest.zip"
    with zipfile.ZipFile(result.target) as archive:
        assert "spbr0002/spbackup.xml" in archive.namelist()
        assert "spbr0003/spbackup.xml" not in archive.namelist()


def test_update_catalog_path_defaults_to_catalog_root(tmp_path):
    original = build_catalog(tmp_path / "farm", [full(1), diff(2)])
    moved = tmp_path / "moved"
    original.rename(moved)
    service = _service(tmp_path)

    changed = service.update_catalog_path(moved)

    assert changed == 2
    status = service.status(moved)
    assert status.last_backup_path == f"{moved}/spbr0002/"


def test_status_report_honours_error_only(tmp_path):
    clean = build_catalog(tmp_path / "clean", [full(1)])
    broken = build_catalog(tmp_path / "broken", [full(1), diff(2, errors=2)])
    service = _service(tmp_path, report={"null_value": "n/a"})

    assert service.status_report(clean, on_error_only=True) is None
    body = service.status_report(broken, on_error_only=True)
    assert body is not None
    assert "Errors:" in body
    assert "Differential" in body
    missing = service.status_report(tmp_path / "nowhere")
    assert "n/a" in missing
    assert service.status_subject(service.status(clean)) == f"Backup status for {clean}"


def test_service_loads_settings_from_working_dir(tmp_path):
    root = build_catalog(tmp_path / "farm", _alternating())
    working_dir = tmp_path / "work"
    working_dir.mkdir()
    (working_dir / "settings.json").write_text(
        json.dumps({"version": 1, "grooming": {"retain_size_gb": 0.000001}}), encoding="utf-8"
    )

    service = CatalogService(working_dir=working_dir)
    result = service.groom(root)

    assert result.count is None
    assert result.size is not None
    assert run_numbers(root) == [7, 8]
