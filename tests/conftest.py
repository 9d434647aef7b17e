"""
Pytest configuration and fixtures for Till Bridge tests.
"""
import asyncio
import json

import httpx
import pytest

from till_bridge.config import BridgeConfig
from till_bridge.errors import DaemonUnavailable
from till_bridge.ui.dom import SoupPage

API_BASE = "http://backend.test/api/v1/contrib/tillbridge"

POS_PAY_URL = "https://library.test/cgi-bin/koha/pos/pay.pl"

POS_PAY_HTML = """
<html><body>
<div id="transient_result"></div>
<h1>Point of sale</h1>
<form id="payment" method="post" action="/cgi-bin/koha/pos/pay.pl">
  <select id="registerid" name="registerid">
    <option value="">Select a register</option>
    <option value="3" selected="selected">Front desk</option>
  </select>
  <input type="submit" id="submitbutton" name="submitbutton" class="btn btn-primary" value="Confirm">
</form>
</body></html>
"""


class FakeTray:
    """Stand-in for TrayClient that records what the bridge asks of it."""

    def __init__(self, reachable=True, default_printer="Epson TM-T88V", printers=None,
                 print_error=None, connect_delay=0.0):
        self.reachable = reachable
        self.default_printer = default_printer
        self.printers = printers or ["Epson TM-T88V", "HP LaserJet"]
        self.print_error = print_error
        self.connect_delay = connect_delay
        self.connect_calls = []
        self.print_calls = []
        self.default_calls = 0
        self.disconnect_calls = 0
        self.active = False
        self.certificate_provider = None
        self.signature_provider = None

    def set_certificate_provider(self, provider):
        self.certificate_provider = provider

    def set_signature_provider(self, provider):
        self.signature_provider = provider

    def is_active(self):
        return self.active

    async def connect(self, retries=None, delay=None):
        self.connect_calls.append({"retries": retries, "delay": delay})
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if not self.reachable:
            raise DaemonUnavailable("Unable to establish connection with the tray service")
        self.active = True

    async def disconnect(self):
        self.disconnect_calls += 1
        self.active = False

    async def get_default_printer(self):
        self.default_calls += 1
        return self.default_printer

    async def find_printers(self, query=None):
        return list(self.printers)

    async def print_raw(self, printer, data):
        self.print_calls.append((printer, data))
        if self.print_error is not None:
            raise self.print_error


class FakeBackend:
    """httpx MockTransport handler for the certificate/sign/log endpoints."""

    def __init__(self):
        self.requests = []
        self.responses = {
            "/certificate": lambda: httpx.Response(200, text="-----BEGIN CERTIFICATE-----"),
            "/sign": lambda: httpx.Response(200, text="c2lnbmF0dXJl"),
            "/log-error": lambda: httpx.Response(200, json={"ok": True}),
            "/log-printer": lambda: httpx.Response(200, json={"ok": True}),
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for suffix, respond in self.responses.items():
            if request.url.path.endswith(suffix):
                return respond()
        return httpx.Response(404, json={"error": "Not found"})

    def posted(self, suffix):
        return [
            json.loads(r.content)
            for r in self.requests
            if r.method == "POST" and r.url.path.endswith(suffix)
        ]

    def errors_logged(self, context=None):
        entries = self.posted("/log-error")
        if context is None:
            return entries
        return [e for e in entries if e["context"] == context]


@pytest.fixture
def config() -> BridgeConfig:
    return BridgeConfig(
        api_base=API_BASE,
        register_mappings={"3": "Citizen CT-S2000"},
        current_register="1",
        resume_delay_ms=0,
        drawer_cooldown_ms=0,
        toolbar_reset_delay_ms=0,
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def http(backend) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(backend.handler))


@pytest.fixture
def tray() -> FakeTray:
    return FakeTray()


@pytest.fixture
def pos_page() -> SoupPage:
    return SoupPage(POS_PAY_HTML, url=POS_PAY_URL)
