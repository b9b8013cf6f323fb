import json

import pytest

from volume_swapper.core import logger
from volume_swapper.core.config import settings
from volume_swapper.core.logger import get_logger, bind_pair, SWAPS_TOTAL, TX_FAILURES


@pytest.fixture
def json_logging(monkeypatch):
    monkeypatch.setattr(settings, "LOG_FORMAT", "json")
    logger.configure_logging()
    yield
    monkeypatch.undo()
    logger.configure_logging()


def test_json_events_carry_bound_pair(json_logging, capsys):
    bind_pair("USDT->ETH")
    get_logger("test").info("UNIT_TEST_EVENT", data=1)
    bind_pair("-")

    line = capsys.readouterr().out.strip().splitlines()[-1]
    event = json.loads(line)
    assert event["event"] == "UNIT_TEST_EVENT"
    assert event["data"] == 1
    assert event["pair"] == "USDT->ETH"
    assert event["level"] == "info"


def test_prometheus_counters():
    c = SWAPS_TOTAL.labels(pair="unit", outcome="success")
    initial = c._value.get()
    c.inc()
    assert c._value.get() == initial + 1

    f = TX_FAILURES.labels(kind="sequencing_conflict")
    initial = f._value.get()
    f.inc()
    assert f._value.get() == initial + 1
