"""
Drawer button interception.

For every button a page rule matches, the original is hidden and a drawer
button takes its place. Clicking the drawer button opens the till and then
hands the workflow back to the original button. The original always comes
back, whatever happens to the drawer.
"""

import asyncio
import enum
import logging
import uuid
from dataclasses import dataclass
from urllib.parse import parse_qs, urlparse

from ..notifier import UNAVAILABLE_MESSAGE
from .pages import PageRule

logger = logging.getLogger('till.bridge.buttons')

STATUS_MESSAGE = 'Opening cash drawer...'
ORIGINAL_CLASS_PREFIX = 'till-original-button-'
DRAWER_CLASS_PREFIX = 'till-drawer-button-'
STATUS_CLASS = 'till-drawer-status'


class BindingState(enum.Enum):
    UNBOUND = 'unbound'
    BOUND = 'bound'
    OPERATING = 'operating'
    RESUMED = 'resumed'
    REVERTED = 'reverted'


@dataclass
class ButtonBinding:
    id: str
    rule: PageRule
    original: object
    replacement: object = None
    status: object = None
    original_text: str = ''
    original_value: str | None = None
    original_class: str = ''
    original_type: str = ''
    state: BindingState = BindingState.UNBOUND


def generate_binding_id() -> str:
    return uuid.uuid4().hex[:8]


class ButtonOrchestrator:
    """Binds drawer buttons on the current page and runs their clicks."""

    def __init__(self, config, page, rules, controller, availability, lock, notifier):
        self._config = config
        self._page = page
        self._rules = rules
        self._controller = controller
        self._availability = availability
        self._lock = lock
        self._notifier = notifier
        self._bindings: dict[str, ButtonBinding] = {}

    @property
    def bindings(self) -> dict[str, ButtonBinding]:
        return dict(self._bindings)

    # ─── Binding ────────────────────────────────────────────────────────

    def initialize(self) -> int:
        """Replace every matched button. Returns the number of bindings made."""
        if self._page is None:
            return 0

        matched = self._rules.detect_current_page()
        if not matched:
            logger.info("Current page not configured for cash drawer integration")
            return 0

        logger.info(f"Initializing button replacement for {len(matched)} configuration(s)")

        count = 0
        for rule in matched:
            if rule.skip_if_writeoff and self._is_writeoff():
                logger.info(f"Write-off page, skipping {rule.description}")
                continue
            for element in self._page.select(rule.selector):
                if not self._register_matches(rule, element):
                    continue
                self._bind(element, rule)
                count += 1
        return count

    def _register_matches(self, rule: PageRule, element) -> bool:
        if not rule.require_session_register_match:
            return True

        session_register = self._config.current_register
        element_register = element.get_attribute('data-registerid') or ''
        if not session_register or element_register != session_register:
            logger.debug(f"Register {element_register!r} is not the session register, leaving button alone")
            return False
        return True

    def _is_writeoff(self) -> bool:
        query = parse_qs(urlparse(self._page.url).query)
        if any(v.lower() == 'writeoff' for v in query.get('type', [])):
            return True

        for field in self._page.select('input[name="type"]'):
            if (field.value or '').lower() == 'writeoff':
                return True
        return False

    def _bind(self, original, rule: PageRule) -> ButtonBinding:
        binding_id = generate_binding_id()
        binding = ButtonBinding(
            id=binding_id,
            rule=rule,
            original=original,
            original_text=original.text or original.value,
            original_value=original.get_attribute('value'),
            original_class=original.class_name,
            original_type=original.type or 'button',
        )

        original.text = rule.original_button_text
        original.value = rule.original_button_text
        original.class_name = f"{binding.original_class} {ORIGINAL_CLASS_PREFIX}{binding_id}"
        original.hide()

        replacement = self._page.create_element('input', {
            'type': binding.original_type,
            'class': f"{binding.original_class} {DRAWER_CLASS_PREFIX}{binding_id}".strip(),
            'id': f"{DRAWER_CLASS_PREFIX}{binding_id}",
            'value': rule.drawer_button_text,
        })
        replacement.on_click(lambda: self.handle_click(binding_id))

        status = self._page.create_element('span', {
            'class': STATUS_CLASS,
            'id': f"till-drawer-status-{binding_id}",
            'style': 'display: none',
        }, text=STATUS_MESSAGE)

        original.insert_before(replacement)
        original.insert_before(status)

        binding.replacement = replacement
        binding.status = status
        binding.state = BindingState.BOUND
        self._bindings[binding_id] = binding

        logger.info(f"Button replaced for {rule.description} with ID {binding_id}")
        return binding

    # ─── Clicks ─────────────────────────────────────────────────────────

    async def handle_click(self, binding_id: str):
        binding = self._bindings.get(binding_id)
        if binding is None:
            logger.error(f"Button data not found for ID: {binding_id}")
            return

        if not self._lock.lock():
            logger.debug("Drawer button click ignored, transaction in progress")
            return

        try:
            binding.state = BindingState.OPERATING
            logger.info(f"Opening drawer for {binding.rule.description}")

            if self._availability.is_available() is False:
                self._notifier.show_warning(UNAVAILABLE_MESSAGE)
            else:
                binding.status.show()
                binding.replacement.disabled = True

                result = await self._controller.attempt()
                if not result.ok:
                    logger.warning(f"Proceeding with workflow despite drawer error: {result.error}")
                    if self._config.resume_delay > 0:
                        await asyncio.sleep(self._config.resume_delay)
        finally:
            try:
                self._resume(binding)
            finally:
                self._lock.unlock()

        if self._config.auto_submit_after_drawer:
            logger.debug(f"Auto-submitting {binding.rule.description}")
            await binding.original.click()

    def _resume(self, binding: ButtonBinding):
        """Hand the workflow back to the original button."""
        try:
            binding.replacement.hide()
            binding.status.hide()
        finally:
            binding.original.show()
            binding.original.disabled = False
            binding.state = BindingState.RESUMED

    # ─── Reset ──────────────────────────────────────────────────────────

    def reset_buttons(self):
        """Remove drawer buttons and restore the originals."""
        for binding_id, binding in self._bindings.items():
            if binding.replacement is not None:
                binding.replacement.remove()
            if binding.status is not None:
                binding.status.remove()

            original = binding.original
            original.show()
            original.disabled = False
            original.class_name = ' '.join(
                c for c in original.class_name.split() if c != f"{ORIGINAL_CLASS_PREFIX}{binding_id}"
            )
            original.text = binding.original_text
            if binding.original_value is None:
                original.remove_attribute('value')
            else:
                original.value = binding.original_value
            binding.state = BindingState.REVERTED

        if self._bindings:
            logger.info("All buttons reset")
        self._bindings.clear()

    def get_debug_info(self) -> dict:
        return {
            'total_buttons': len(self._bindings),
            'buttons': [
                {
                    'button_id': binding_id,
                    'description': b.rule.description,
                    'state': b.state.value,
                    'original_visible': b.original.visible,
                    'drawer_visible': b.replacement.visible if b.replacement is not None else False,
                }
                for binding_id, b in self._bindings.items()
            ],
            'page_supported': self._rules.is_current_page_supported(),
        }
