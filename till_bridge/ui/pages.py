"""
Page rules: which buttons on which pages open the cash drawer.

A page may carry several rules; every rule whose URL pattern matches the
current page applies.
"""

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger('till.bridge.pages')

UrlPattern = str | re.Pattern[str]


@dataclass(frozen=True)
class PageRule:
    url_pattern: UrlPattern
    selector: str
    drawer_button_text: str = 'Confirm'
    original_button_text: str = 'Confirm'
    description: str = ''
    require_session_register_match: bool = False
    skip_if_writeoff: bool = False

    def matches(self, url: str) -> bool:
        """Substring match, or regex search for compiled patterns."""
        if isinstance(self.url_pattern, re.Pattern):
            return self.url_pattern.search(url) is not None
        return self.url_pattern in url


DEFAULT_PAGE_RULES = (
    PageRule(
        url_pattern='pos/pay.pl',
        selector='#submitbutton',
        drawer_button_text='Confirm',
        original_button_text='Commit payment',
        description='POS Payment Confirmation',
    ),
    PageRule(
        url_pattern='pos/register.pl',
        selector='#triggerCashupModal button[type="submit"].btn-primary',
        drawer_button_text='Start cashup',
        original_button_text='Start cashup',
        description='POS Register Start Two-Stage Cashup',
    ),
    PageRule(
        url_pattern='pos/register.pl',
        selector='#triggerCashupModal button[type="button"].btn-success',
        drawer_button_text='Quick cashup',
        original_button_text='Quick cashup',
        description='POS Register Cashup Confirm (Quick cashup only)',
    ),
    PageRule(
        url_pattern='pos/register.pl',
        selector='#pos_refund_confirm',
        drawer_button_text='Confirm',
        original_button_text='Confirm',
        description='POS Refund Confirmation',
    ),
    PageRule(
        url_pattern='pos/registers.pl',
        selector='button.cashup_individual[data-registerid]',
        drawer_button_text='Record cashup',
        original_button_text='Record cashup',
        description='Individual Register Cashup (from list)',
        require_session_register_match=True,
    ),
    PageRule(
        url_pattern='pos/registers.pl',
        selector='button.pos_complete_cashup[data-registerid]',
        drawer_button_text='Complete cashup',
        original_button_text='Complete cashup',
        description='Complete Register Cashup (from list)',
        require_session_register_match=True,
    ),
    PageRule(
        url_pattern='members/boraccount.pl',
        selector='#borr_payout_confirm',
        drawer_button_text='Confirm',
        original_button_text='Commit payout',
        description='Member Account Payout',
    ),
    PageRule(
        url_pattern='members/paycollect.pl',
        selector='#payindivfine input[name="submitbutton"]',
        drawer_button_text='Confirm',
        original_button_text='Confirm',
        description='Member Individual Payment',
    ),
    PageRule(
        url_pattern='members/paycollect.pl',
        selector='#payfine input[name="submitbutton"]',
        drawer_button_text='Confirm',
        original_button_text='Confirm',
        description='Member Payment (All/Selected)',
        skip_if_writeoff=True,
    ),
)


class PageRuleEngine:
    """Holds the rule table and matches it against the current page."""

    def __init__(self, page=None, rules=DEFAULT_PAGE_RULES):
        self._page = page
        self._rules: list[PageRule] = list(rules)

    @property
    def current_url(self) -> str:
        return getattr(self._page, 'url', '') if self._page is not None else ''

    def detect_current_page(self, url: str | None = None) -> list[PageRule]:
        """All rules matching the page URL, in table order."""
        url = self.current_url if url is None else url
        if not url:
            return []
        return [rule for rule in self._rules if rule.matches(url)]

    def is_current_page_supported(self) -> bool:
        return len(self.detect_current_page()) > 0

    def get_config_for_pattern(self, url_pattern: UrlPattern) -> PageRule | None:
        for rule in self._rules:
            if rule.url_pattern == url_pattern:
                return rule
        return None

    def add_page_config(self, rule: PageRule):
        """Add a rule, replacing one with the same pattern and selector."""
        if not rule.url_pattern or not rule.selector:
            raise ValueError("Page configuration must include url_pattern and selector")

        for index, existing in enumerate(self._rules):
            if existing.url_pattern == rule.url_pattern and existing.selector == rule.selector:
                self._rules[index] = rule
                logger.debug(f"Replaced page rule: {rule.description or rule.selector}")
                return

        self._rules.append(rule)
        logger.debug(f"Added page rule: {rule.description or rule.selector}")

    def remove_page_config(self, url_pattern: UrlPattern, selector: str):
        self._rules = [
            rule for rule in self._rules
            if not (rule.url_pattern == url_pattern and rule.selector == selector)
        ]

    def get_all_configs(self) -> list[PageRule]:
        return list(self._rules)

    def get_debug_info(self) -> dict:
        matched = self.detect_current_page()
        return {
            'current_url': self.current_url,
            'matched_configs': [r.description for r in matched],
            'is_supported': len(matched) > 0,
            'available_configs': len(self._rules),
        }
