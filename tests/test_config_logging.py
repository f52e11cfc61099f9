# tests/test_config_logging.py
import json
import logging
from pathlib import Path

import pytest

from construction_ledger import config
from construction_ledger.utils.helpers import fmt_money
from construction_ledger.utils.loggers import _JsonLineFormatter, log_event
from construction_ledger.utils.validators import is_positive_int_id, try_parse_float


def test_db_path_resolution(monkeypatch, tmp_path):
    monkeypatch.delenv("LEDGER_DB_PATH", raising=False)
    assert config.resolve_db_path() == config.DB_PATH
    monkeypatch.setenv("LEDGER_DB_PATH", str(tmp_path / "env.db"))
    assert config.resolve_db_path() == (tmp_path / "env.db").resolve()
    assert config.resolve_db_path(tmp_path / "arg.db") == (tmp_path / "arg.db").resolve()


def test_base_currency_from_env(monkeypatch):
    assert config.base_currency() == "TRY"
    monkeypatch.setenv("LEDGER_BASE_CURRENCY", "usd")
    assert config.base_currency() == "USD"
    monkeypatch.setenv("LEDGER_BASE_CURRENCY", "GBP")
    with pytest.raises(ValueError):
        config.base_currency()


def test_log_event_attaches_payload(caplog):
    logger = logging.getLogger("construction_ledger.tests")
    with caplog.at_level(logging.INFO, logger="construction_ledger"):
        log_event(logger, "restore", "commit", "Record restored", {"trash_id": 3, "op": "ignored"})
    record = caplog.records[-1]
    assert record.extra_payload == {"op": "restore", "phase": "commit", "trash_id": 3}
    line = json.loads(_JsonLineFormatter().format(record))
    assert line["msg"] == "Record restored"
    assert line["extra"]["trash_id"] == 3


def test_trash_events_are_logged(conn, caplog):
    from construction_ledger.database.repositories.trash_repo import TrashRepo

    with caplog.at_level(logging.INFO, logger="construction_ledger"):
        TrashRepo(conn).empty_trash()
    assert any(getattr(r, "extra_payload", {}).get("op") == "empty" for r in caplog.records)


def test_fmt_money():
    assert fmt_money(1250) == "1,250.00"
    assert fmt_money(3.14159, 3, currency="USD") == "3.142 USD"
    assert fmt_money("n/a", sentinel="-") == "-"


@pytest.mark.parametrize("value,expected", [
    (5, True), (5.0, True), (0, False), (-1, False), (2.5, False), (True, False), ("5", False), (None, False),
])
def test_is_positive_int_id(value, expected):
    assert is_positive_int_id(value) is expected


def test_try_parse_float():
    assert try_parse_float("2.5") == (True, 2.5)
    assert try_parse_float(None) == (False, None)
    assert try_parse_float(False) == (False, None)


def test_default_db_path_under_project_data_dir():
    assert config.DB_PATH.parent.name == "data"
    assert isinstance(config.DB_PATH, Path)
