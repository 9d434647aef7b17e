"""
Tests for drawer button interception and workflow resumption.
"""

import pytest

from till_bridge.auth import AuthBridge
from till_bridge.availability import AvailabilityProbe
from till_bridge.controller import DrawerController
from till_bridge.lock import TransactionLock
from till_bridge.notifier import UNAVAILABLE_MESSAGE, Notifier
from till_bridge.ui.buttons import BindingState, ButtonOrchestrator
from till_bridge.ui.dom import SoupPage
from till_bridge.ui.pages import PageRuleEngine

from tests.conftest import FakeTray

CITIZEN = bytes([27, 112, 0, 50, 250])

REGISTERS_HTML = """
<table>
  <tr><td><button class="cashup_individual btn" data-registerid="1">Record cashup</button></td></tr>
  <tr><td><button class="cashup_individual btn" data-registerid="2">Record cashup</button></td></tr>
</table>
"""

PAYCOLLECT_HTML = """
<form id="payfine">
  <input type="hidden" name="type" value="{type}">
  <input type="submit" name="submitbutton" class="btn btn-primary" value="Confirm">
</form>
"""


def make_orchestrator(config, http, tray, page, lock=None):
    notifier = Notifier(config, http, page)
    auth = AuthBridge(config, http, notifier)
    availability = AvailabilityProbe(tray, auth)
    controller = DrawerController(config, tray, auth, availability, notifier, page=page)
    lock = lock or TransactionLock()
    orchestrator = ButtonOrchestrator(
        config, page, PageRuleEngine(page), controller, availability, lock, notifier,
    )
    return orchestrator, availability, lock, notifier


def only_binding(orchestrator):
    [binding] = orchestrator.bindings.values()
    return binding


@pytest.mark.asyncio
async def test_pay_button_is_replaced(config, http, tray, pos_page):
    orchestrator, _, _, _ = make_orchestrator(config, http, tray, pos_page)

    assert orchestrator.initialize() == 1

    binding = only_binding(orchestrator)
    original = pos_page.get_by_id("submitbutton")
    assert not original.visible
    assert original.value == "Commit payment"
    assert f"till-original-button-{binding.id}" in original.class_name

    replacement = pos_page.get_by_id(f"till-drawer-button-{binding.id}")
    assert replacement.visible
    assert replacement.value == "Confirm"
    assert replacement.type == "submit"
    assert "btn-primary" in replacement.class_name
    assert binding.state is BindingState.BOUND


@pytest.mark.asyncio
async def test_click_opens_mapped_drawer_and_resumes(config, http, tray, pos_page):
    orchestrator, _, lock, notifier = make_orchestrator(config, http, tray, pos_page)
    orchestrator.initialize()
    binding = only_binding(orchestrator)

    await binding.replacement.click()

    assert tray.print_calls == [("Citizen CT-S2000", CITIZEN)]
    assert pos_page.get_by_id("submitbutton").visible
    assert not binding.replacement.visible
    assert not binding.status.visible
    assert binding.state is BindingState.RESUMED
    assert not lock.is_locked()
    assert notifier.last_notice.level == "success"
    assert pos_page.submissions == []


@pytest.mark.asyncio
async def test_failed_print_still_resumes(config, http, pos_page, backend):
    tray = FakeTray(reachable=False)
    orchestrator, availability, lock, _ = make_orchestrator(config, http, tray, pos_page)
    orchestrator.initialize()
    binding = only_binding(orchestrator)

    await binding.replacement.click()

    assert pos_page.get_by_id("submitbutton").visible
    assert not lock.is_locked()
    assert availability.is_available() is False
    assert backend.errors_logged("qztray_drawer_operation")


@pytest.mark.asyncio
async def test_cached_unavailable_warns_without_connecting(config, http, tray, pos_page):
    orchestrator, availability, _, _ = make_orchestrator(config, http, tray, pos_page)
    orchestrator.initialize()
    availability.mark_unavailable()
    binding = only_binding(orchestrator)

    await binding.replacement.click()

    assert tray.connect_calls == []
    assert pos_page.get_by_id("transient_result").text == UNAVAILABLE_MESSAGE
    assert pos_page.get_by_id("submitbutton").visible


@pytest.mark.asyncio
async def test_click_ignored_while_locked(config, http, tray, pos_page):
    lock = TransactionLock()
    orchestrator, _, _, _ = make_orchestrator(config, http, tray, pos_page, lock)
    orchestrator.initialize()
    binding = only_binding(orchestrator)
    lock.lock()

    await binding.replacement.click()

    assert tray.connect_calls == []
    assert binding.replacement.visible
    assert not pos_page.get_by_id("submitbutton").visible
    assert lock.is_locked()


@pytest.mark.asyncio
async def test_auto_submit_clicks_original(config, http, tray, pos_page):
    config.override(auto_submit_after_drawer=True)
    orchestrator, _, _, _ = make_orchestrator(config, http, tray, pos_page)
    orchestrator.initialize()

    await only_binding(orchestrator).replacement.click()

    [submitted] = pos_page.submissions
    assert submitted.id == "submitbutton"


@pytest.mark.asyncio
async def test_unexpected_error_still_resumes(config, http, tray, pos_page):
    orchestrator, _, lock, _ = make_orchestrator(config, http, tray, pos_page)
    orchestrator.initialize()
    binding = only_binding(orchestrator)

    async def exploding_attempt():
        raise RuntimeError("unexpected")

    orchestrator._controller.attempt = exploding_attempt

    with pytest.raises(RuntimeError):
        await binding.replacement.click()

    assert pos_page.get_by_id("submitbutton").visible
    assert not lock.is_locked()


@pytest.mark.asyncio
async def test_reset_restores_page_and_is_idempotent(config, http, tray, pos_page):
    orchestrator, _, _, _ = make_orchestrator(config, http, tray, pos_page)
    orchestrator.initialize()

    orchestrator.reset_buttons()
    orchestrator.reset_buttons()

    original = pos_page.get_by_id("submitbutton")
    assert original.visible
    assert original.value == "Confirm"
    assert original.class_name == "btn btn-primary"
    assert pos_page.select('[id^="till-drawer"]') == []
    assert orchestrator.bindings == {}


@pytest.mark.asyncio
async def test_registers_page_binds_only_session_register(config, http, tray):
    page = SoupPage(REGISTERS_HTML, url="https://library.test/cgi-bin/koha/pos/registers.pl")
    orchestrator, _, _, _ = make_orchestrator(config, http, tray, page)

    assert orchestrator.initialize() == 1

    buttons = page.select("button.cashup_individual")
    assert not buttons[0].visible
    assert buttons[1].visible


@pytest.mark.asyncio
async def test_writeoff_payment_is_left_alone(config, http, tray):
    url = "https://library.test/cgi-bin/koha/members/paycollect.pl"
    writeoff = SoupPage(PAYCOLLECT_HTML.format(type="WRITEOFF"), url=url + "?borrowernumber=5")
    payment = SoupPage(PAYCOLLECT_HTML.format(type="PAYMENT"), url=url + "?borrowernumber=5")

    assert make_orchestrator(config, http, tray, writeoff)[0].initialize() == 0
    assert make_orchestrator(config, http, tray, payment)[0].initialize() == 1


@pytest.mark.asyncio
async def test_debug_info(config, http, tray, pos_page):
    orchestrator, _, _, _ = make_orchestrator(config, http, tray, pos_page)
    orchestrator.initialize()

    info = orchestrator.get_debug_info()

    assert info["total_buttons"] == 1
    assert info["page_supported"] is True
    assert info["buttons"][0]["description"] == "POS Payment Confirmation"
    assert info["buttons"][0]["original_visible"] is False
