import json
import logging
import sys

from roofdesk.logging_config import JsonFormatter, build_formatter


def _record(message, *args, exc_info=None):
    return logging.LogRecord(
        name="roofdesk.test",
        level=logging.WARNING,
        pathname=__file__,
        lineno=12,
        msg=message,
        args=args,
        exc_info=exc_info,
    )


def test_json_lines_escape_quotes_and_newlines():
    line = JsonFormatter().format(_record('Feed "ABC" failed:\n%s', "timeout"))
    assert "\n" not in line
    payload = json.loads(line)
    assert payload["message"] == 'Feed "ABC" failed:\ntimeout'
    assert payload["level"] == "WARNING"
    assert payload["logger"] == "roofdesk.test"
    assert payload["line"] == 12


def test_json_lines_carry_the_traceback():
    try:
        raise ValueError("bad row")
    except ValueError:
        record = _record("Upsert failed", exc_info=sys.exc_info())
    payload = json.loads(JsonFormatter().format(record))
    assert "ValueError: bad row" in payload["exception"]


def test_build_formatter_picks_by_name():
    assert isinstance(build_formatter("json"), JsonFormatter)
    simple = build_formatter("simple").format(_record("hello"))
    assert simple == "WARNING - roofdesk.test - hello"
