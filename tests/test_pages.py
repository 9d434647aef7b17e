"""
Tests for the page rule table.
"""

import re

import pytest

from till_bridge.ui.dom import SoupPage
from till_bridge.ui.pages import DEFAULT_PAGE_RULES, PageRule, PageRuleEngine

from tests.conftest import POS_PAY_URL

REGISTER_URL = "https://library.test/cgi-bin/koha/pos/register.pl?registerid=1"


def test_pay_page_matches_one_rule():
    engine = PageRuleEngine(SoupPage("", url=POS_PAY_URL))

    [rule] = engine.detect_current_page()

    assert rule.selector == "#submitbutton"
    assert rule.original_button_text == "Commit payment"
    assert engine.is_current_page_supported()


def test_register_page_matches_every_rule_in_order():
    engine = PageRuleEngine()

    matched = engine.detect_current_page(REGISTER_URL)

    assert [r.description for r in matched] == [
        "POS Register Start Two-Stage Cashup",
        "POS Register Cashup Confirm (Quick cashup only)",
        "POS Refund Confirmation",
    ]


def test_registers_list_does_not_match_register_rules():
    engine = PageRuleEngine()

    matched = engine.detect_current_page("https://library.test/cgi-bin/koha/pos/registers.pl")

    assert len(matched) == 2
    assert all(r.require_session_register_match for r in matched)


def test_unsupported_page():
    engine = PageRuleEngine(SoupPage("", url="https://library.test/cgi-bin/koha/catalogue/search.pl"))

    assert engine.detect_current_page() == []
    assert engine.get_debug_info()["is_supported"] is False
    assert engine.get_debug_info()["available_configs"] == len(DEFAULT_PAGE_RULES)


def test_regex_patterns():
    engine = PageRuleEngine(rules=[PageRule(re.compile(r"/pos/[a-z]+\.pl$"), "#go")])

    assert engine.detect_current_page("https://x/pos/pay.pl")
    assert not engine.detect_current_page("https://x/pos/pay.pl?foo=1")


def test_add_requires_pattern_and_selector():
    engine = PageRuleEngine()

    with pytest.raises(ValueError):
        engine.add_page_config(PageRule("", "#x"))
    with pytest.raises(ValueError):
        engine.add_page_config(PageRule("custom.pl", ""))


def test_add_replaces_same_pattern_and_selector():
    engine = PageRuleEngine(rules=[])
    engine.add_page_config(PageRule("custom.pl", "#pay", description="first"))
    engine.add_page_config(PageRule("custom.pl", "#pay", description="second"))
    engine.add_page_config(PageRule("custom.pl", "#refund", description="third"))

    assert [r.description for r in engine.get_all_configs()] == ["second", "third"]
    assert engine.get_config_for_pattern("custom.pl").description == "second"


def test_remove_page_config():
    engine = PageRuleEngine()

    engine.remove_page_config("pos/pay.pl", "#submitbutton")

    assert engine.detect_current_page(POS_PAY_URL) == []
    assert engine.get_config_for_pattern("pos/pay.pl") is None
