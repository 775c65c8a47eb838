import logging

from geata_core.logging_config import RedactionFilter, configure_logging


def test_redaction_masks_credentials():
    redact = RedactionFilter.redact
    assert redact("Authorization: Bearer abc.def.ghi") == "Authorization: Bearer [REDACTED]"
    assert redact("GET /x?token=s3cr3t&a=1") == "GET /x?token=[REDACTED]&a=1"
    assert redact("x-api-key: hunter2") == "x-api-key: [REDACTED]"
    assert redact('{"secret": "p4ss"}') == '{"secret": "[REDACTED]"}'
    assert redact("poll device=gate1 queued=2") == "poll device=gate1 queued=2"


def test_filter_formats_args_before_redacting():
    record = logging.LogRecord("geata_core", logging.INFO, __file__, 1, "device secret=%s", ("abc123",), None)
    assert RedactionFilter().filter(record)
    assert record.getMessage() == "device secret=[REDACTED]"


def test_configure_logging_without_config_file_falls_back(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    configure_logging(level="debug", config_file=tmp_path / "missing.ini")
    root = logging.getLogger()
    assert any(isinstance(f, RedactionFilter) for f in root.filters)
