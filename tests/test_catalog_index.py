from xml.etree import ElementTree as ET

import pytest

from catalog.errors import IndexFormatError
from catalog.index import CatalogIndex, RunMethod, parse_timestamp

from catalog_fixtures import Run, build_catalog, diff, full


def test_load_reads_run_fields(tmp_path):
    root = build_catalog(
        tmp_path / "farm",
        [full(1, errors=2, warnings=3), diff(2), Run(3, method=None, is_backup=False)],
        with_dirs=False,
    )

    index = CatalogIndex.load(root / "spbrtoc.xml")

    assert len(index) == 3
    first, second, restore = index.entries
    assert first.directory_number == 1
    assert first.directory_name == "spbr0001"
    assert first.method is RunMethod.FULL
    assert first.is_full and not first.is_differential
    assert first.error_count == 2 and first.has_errors
    assert first.warning_count == 3
    assert first.requested_by == "CONTOSO\\spadmin"
    assert first.top_component == "Farm"
    assert first.start_time.hour == 1
    assert second.is_differential
    assert not restore.is_backup
    assert [entry.directory_number for entry in index.backups()] == [1, 2]


def test_unknown_fields_survive_save(tmp_path):
    root = build_catalog(
        tmp_path / "farm",
        [full(1, extra={"SPVendorNote": "keep me"})],
        with_dirs=False,
    )
    index = CatalogIndex.load(root / "spbrtoc.xml")
    target = tmp_path / "copy.xml"

    index.save(target)

    document = ET.parse(target).getroot()
    assert document.tag == "SPBackupRestoreHistory"
    assert document[0].findtext("SPVendorNote") == "keep me"
    assert document[0].findtext("SPTopComponentId") == "11111111-2222-3333-4444-555555555555"
    assert target.read_bytes().startswith(b"<?xml")
    assert not (tmp_path / "copy.xml.tmp").exists()


def test_missing_optional_fields_use_defaults():
    index = CatalogIndex.from_bytes(
        b"<SPBackupRestoreHistory><SPHistoryObject>"
        b"<SPDirectoryNumber>7</SPDirectoryNumber>"
        b"</SPHistoryObject></SPBackupRestoreHistory>"
    )
    entry = index.entries[0]

    assert entry.directory_number == 7
    assert entry.is_backup is False
    assert entry.configuration_only is False
    assert entry.error_count == 0
    assert entry.method is None
    assert entry.directory_name is None
    assert entry.start_time is None


def test_malformed_fields_raise_index_format_error():
    index = CatalogIndex.from_bytes(
        b"<SPBackupRestoreHistory>"
        b"<SPHistoryObject><SPDirectoryNumber>abc</SPDirectoryNumber></SPHistoryObject>"
        b"<SPHistoryObject><SPDirectoryNumber>2</SPDirectoryNumber><SPErrorCount>x</SPErrorCount></SPHistoryObject>"
        b"<SPHistoryObject><SPIsBackup>True</SPIsBackup></SPHistoryObject>"
        b"</SPBackupRestoreHistory>"
    )
    bad_number, bad_errors, no_number = index.entries

    with pytest.raises(IndexFormatError):
        bad_number.directory_number
    with pytest.raises(IndexFormatError):
        bad_errors.error_count
    with pytest.raises(IndexFormatError):
        no_number.directory_number


def test_unparsable_document_raises_index_format_error():
    with pytest.raises(IndexFormatError):
        CatalogIndex.from_bytes(b"<SPBackupRestoreHistory><oops>")


def test_foreign_root_element_raises_index_format_error():
    with pytest.raises(IndexFormatError, match="SPBackupRestoreHistory"):
        CatalogIndex.from_bytes(b"<SPBackupHistory><SPHistoryObject/></SPBackupHistory>")


def test_failed_save_removes_staging_file_and_keeps_target(tmp_path, monkeypatch):
    root = build_catalog(tmp_path / "farm", [full(1), diff(2)], with_dirs=False)
    index_path = root / "spbrtoc.xml"
    before = index_path.read_bytes()
    index = CatalogIndex.load(index_path)
    index.remove_where(lambda entry: entry.directory_number == 2)

    def refuse(fd):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr("catalog.index.os.fsync", refuse)

    with pytest.raises(OSError):
        index.save(index_path)

    assert index_path.read_bytes() == before
    assert not (root / "spbrtoc.xml.tmp").exists()


def test_eligible_fulls_are_newest_first_and_skip_errors(tmp_path):
    root = build_catalog(
        tmp_path / "farm",
        [
            full(1),
            full(2, configuration_only=True),
            full(3, errors=1),
            diff(4),
            full(5),
            Run(6, is_backup=False),
        ],
        with_dirs=False,
    )
    index = CatalogIndex.load(root / "spbrtoc.xml")

    assert [entry.directory_number for entry in index.eligible_fulls()] == [5, 1]
    assert [entry.directory_number for entry in index.eligible_fulls(ignore_errors=True)] == [5, 3, 1]


def test_remove_where_only_touches_matching_entries(tmp_path):
    root = build_catalog(tmp_path / "farm", [full(1), diff(2), full(3)], with_dirs=False)
    index = CatalogIndex.load(root / "spbrtoc.xml")
    pruned = index.copy()

    removed = pruned.remove_where(lambda entry: entry.directory_number < 3)

    assert [entry.directory_number for entry in removed] == [1, 2]
    assert [entry.directory_number for entry in pruned] == [3]
    assert len(index) == 3


def test_parse_timestamp_accepts_producer_formats():
    assert parse_timestamp("2024-03-01T10:20:30").minute == 20
    assert parse_timestamp("03/01/2024 10:20:30").day == 1
    assert parse_timestamp("03/01/2024 1:20:30 PM").hour == 13
    assert parse_timestamp("not a date") is None
    assert parse_timestamp("") is None
