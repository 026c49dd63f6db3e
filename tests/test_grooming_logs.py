import json
import logging

from core.logging_utils import JsonLogFormatter, configure_json_logging
from grooming.logs import GroomingLogger


def test_grooming_logger_writes_sorted_jsonl(tmp_path):
    logger = GroomingLogger(tmp_path / "work")

    logger.event(event="index_saved", phase="trim_count", ok=True, removed=[1, 2])
    logger.error("run_delete_failed", phase="purge", path=tmp_path / "spbr0001")

    lines = logger.log_path.read_text(encoding="utf-8").splitlines()
    assert logger.log_path == tmp_path / "work" / "logs" / "grooming.jsonl"
    assert len(lines) == 2
    first, second = (json.loads(line) for line in lines)
    assert first["event"] == "index_saved"
    assert first["ok"] is True
    assert first["removed"] == [1, 2]
    assert "ts" in first
    assert list(first) == sorted(first)
    assert second["ok"] is False
    assert second["path"] == str(tmp_path / "spbr0001")


def test_bound_logger_tags_records_with_catalog(tmp_path):
    base = GroomingLogger(tmp_path / "work")
    farm = base.bound(catalog="\\\\srv\\farm")

    farm.info("index_saved", phase="trim_size")
    farm.warning("run_directory_missing", catalog="override")
    base.info("unbound")

    assert farm.log_path == base.log_path
    assert base.context == {}
    records = [json.loads(line) for line in base.log_path.read_text(encoding="utf-8").splitlines()]
    assert [record["event"] for record in records] == ["index_saved", "run_directory_missing", "unbound"]
    assert records[0]["catalog"] == "\\\\srv\\farm"
    assert records[1]["catalog"] == "override"
    assert "catalog" not in records[2]


def test_configure_json_logging_is_idempotent(tmp_path):
    name = "backupcatalog.test_configure"
    logger = configure_json_logging(name, working_dir=tmp_path)
    again = configure_json_logging(name, working_dir=tmp_path)

    try:
        assert logger is again
        handlers = [handler for handler in logger.handlers if isinstance(handler, logging.FileHandler)]
        assert len(handlers) == 1
        logger.info("catalog groomed", extra={"removed": 3})
        handlers[0].flush()
        payload = json.loads((tmp_path / "logs" / "backupcatalog.log.jsonl").read_text(encoding="utf-8"))
        assert payload["message"] == "catalog groomed"
        assert payload["removed"] == 3
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)


def test_formatter_skips_unserialisable_extras():
    record = logging.makeLogRecord({"msg": "hello", "levelname": "INFO", "name": "x", "blob": object()})

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["message"] == "hello"
    assert "blob" not in payload
