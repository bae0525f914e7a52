from __future__ import annotations

import logging
import pathlib
import sys

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from gridview.engine.notifications import Notice, NoticeLevel, Notifier


def test_notices_are_logged_kept_and_forwarded(caplog):
    received = []
    notifier = Notifier(received.append, history_size=2)

    with caplog.at_level(logging.INFO, logger="gridview.engine.notifications"):
        notifier.info("loaded")
        notifier.warning("stale group")
        notifier.error("write failed")

    assert received[0] == Notice(NoticeLevel.INFO, "loaded")
    assert [notice.message for notice in notifier.history] == ["stale group", "write failed"]
    assert [record.levelno for record in caplog.records] == [logging.INFO, logging.WARNING, logging.ERROR]


def test_failing_callback_does_not_propagate():
    def explode(_notice):
        raise RuntimeError("ui gone")

    notifier = Notifier(explode)

    assert notifier.warning("still reported").level is NoticeLevel.WARNING
    assert len(notifier.history) == 1
