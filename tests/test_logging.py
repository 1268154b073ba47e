import json
import logging
from logger_config import setup_logging

def test_setup_logging_writes_json(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    log_file = tmp_path / "logs" / "app.jsonl"
    try:
        setup_logging(str(log_file), debug_mode=True)
        logging.getLogger("Discovery").error("Discovery scan failed: refused")
        for h in root.handlers:
            h.flush()

        record = json.loads(log_file.read_text(encoding="utf-8").strip().splitlines()[-1])
        assert record["level"] == "ERROR"
        assert record["logger"] == "Discovery"
        assert record["message"] == "Discovery scan failed: refused"
        assert "line" in record
    finally:
        for h in root.handlers:
            h.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
