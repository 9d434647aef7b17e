"""
Tests for user feedback rendering and remote error reporting.
"""

import httpx
import pytest

from till_bridge.errors import DaemonUnavailable, PrinterResolutionFailure, SigningFailure
from till_bridge.notifier import CONTINUE_NOTICE, Notifier


def test_message_replaces_transient_result(config, pos_page):
    notifier = Notifier(config, page=pos_page)

    notifier.show_warning("Drawer <jammed>")

    box = pos_page.get_by_id("transient_result")
    assert box.class_name == "alert alert-warning"
    assert box.text == "Drawer <jammed>"
    assert "&lt;jammed&gt;" in pos_page.html


def test_repeated_messages_keep_single_box(config, pos_page):
    notifier = Notifier(config, page=pos_page)

    notifier.show_info("one")
    notifier.show_success("two")

    boxes = pos_page.select("#transient_result")
    assert len(boxes) == 1
    assert boxes[0].class_name == "alert alert-success"
    assert notifier.last_notice.message == "two"


def test_without_page_falls_back_to_log(config, caplog):
    notifier = Notifier(config)

    with caplog.at_level("WARNING", logger="till.bridge.notifier"):
        notifier.show_error("nothing to render into")

    assert "nothing to render into" in caplog.text
    assert notifier.last_notice.level == "error"


@pytest.mark.parametrize("error, expected", [
    (DaemonUnavailable("down"), "tray service is not running"),
    (PrinterResolutionFailure("gone"), "Printer not found"),
    (SigningFailure("bad key"), "Certificate authentication failed"),
    (RuntimeError("?"), "Unable to open cash drawer"),
])
def test_user_message_by_error_class(error, expected):
    assert expected in Notifier.user_message(error)


@pytest.mark.asyncio
async def test_log_error_payload(config, http, backend, pos_page):
    notifier = Notifier(config, http, pos_page)

    await notifier.log_error("boom", context="qztray_drawer_operation", details={"extra": 1})

    [entry] = backend.errors_logged()
    assert entry == {
        "error": "boom",
        "context": "qztray_drawer_operation",
        "user_agent": config.user_agent,
        "page_url": pos_page.url,
        "extra": 1,
    }


@pytest.mark.asyncio
async def test_log_printers_payload(config, http, backend):
    notifier = Notifier(config, http)

    await notifier.log_printers(["Epson TM-T88V"], "3")

    assert backend.posted("/log-printer") == [
        {"printers": ["Epson TM-T88V"], "register_id": "3", "page_url": ""}
    ]


@pytest.mark.asyncio
async def test_remote_logging_never_raises(config):
    def handler(request):
        raise httpx.ConnectError("backend down")

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    notifier = Notifier(config, http)

    await notifier.log_error("boom")
    await notifier.log_printers([], "1")


@pytest.mark.asyncio
async def test_handle_error_reports_and_warns(config, http, backend, pos_page):
    notifier = Notifier(config, http, pos_page)

    await notifier.handle_error(DaemonUnavailable("refused"), "qztray_drawer_operation")

    [entry] = backend.errors_logged("qztray_drawer_operation")
    assert entry["error"] == "Drawer operation failed: refused"
    assert entry["error_type"] == "DaemonUnavailable"
    assert "DaemonUnavailable" in entry["stack"]
    assert notifier.last_notice.level == "warning"
    assert notifier.last_notice.message.endswith(CONTINUE_NOTICE)
