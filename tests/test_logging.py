import io
import json
import logging

from nodekeeper import db
from nodekeeper.logging_setup import setup_logging


def test_json_lines_with_extras():
    stream = io.StringIO()
    logger = setup_logging(verbose=False, stream=stream)

    db.log_event("INFO", "Service restarted", service_name="es-data", instance="es-1")
    db.log_event("DEBUG", "hidden unless verbose")

    lines = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert len(lines) == 1
    assert lines[0]["level"] == "INFO"
    assert lines[0]["msg"] == "Service restarted"
    assert lines[0]["service"] == "es-data"
    assert lines[0]["instance"] == "es-1"
    assert logger.level == logging.INFO


def test_verbose_enables_debug_but_debug_is_not_persisted():
    stream = io.StringIO()
    setup_logging(verbose=True, stream=stream)

    db.log_event("DEBUG", "All local nodes are active members of the cluster")

    assert "All local nodes" in stream.getvalue()
    assert db.latest_events() == []
