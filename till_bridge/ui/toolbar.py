"""
"Open cash drawer" toolbar for the point of sale page.

Lets staff open the till without a sale, e.g. to give change.
"""

import asyncio
import logging

logger = logging.getLogger('till.bridge.toolbar')

POS_PAGE = 'pos/pay.pl'
POS_HEADING = 'Point of sale'
TOOLBAR_ID = 'till-toolbar'
BUTTON_ID = 'till-open-drawer'

LABEL_IDLE = 'Open cash drawer'
LABEL_BUSY = 'Opening drawer...'
LABEL_OK = 'Drawer opened'
LABEL_FAILED = 'Drawer open failed'


class PosToolbar:

    def __init__(self, config, page, controller, lock):
        self._config = config
        self._page = page
        self._controller = controller
        self._lock = lock
        self.toolbar = None
        self.button = None

    def on_pos_page(self) -> bool:
        return self._page is not None and POS_PAGE in self._page.url

    def initialize(self, drawer_ready: bool = False):
        """
        Inject the toolbar (button disabled), and enable the button once the
        drawer is ready. Safe to call twice: first early, then when ready.
        """
        if not self.on_pos_page():
            return

        if self.toolbar is None:
            self._create_toolbar()

        if drawer_ready and self.button is not None:
            self.button.disabled = False
            self.button.remove_attribute('title')
            logger.info("POS toolbar button enabled")

    def _create_toolbar(self):
        heading = self._page.find_heading(POS_HEADING)
        if heading is None:
            logger.warning("Could not find Point of sale heading")
            return

        self.toolbar = self._page.create_element('div', {'id': TOOLBAR_ID, 'class': 'btn-toolbar'})
        self.button = self._page.create_element('button', {
            'type': 'button',
            'class': 'btn btn-default',
            'id': BUTTON_ID,
            'disabled': 'disabled',
            'title': 'Initializing tray service...',
        }, text=LABEL_IDLE)
        self.button.on_click(self.handle_click)

        self.toolbar.append(self.button)
        heading.insert_before(self.toolbar)
        logger.info("POS toolbar added")

    async def handle_click(self):
        with self._lock.guard() as acquired:
            if not acquired:
                logger.debug("Toolbar click ignored, transaction in progress")
                return

            self.button.disabled = True
            self.button.text = LABEL_BUSY
            result = await self._controller.attempt()

        if result.ok:
            self.button.class_name = 'btn btn-success'
            self.button.text = LABEL_OK
        else:
            logger.error(f"Drawer operation failed from toolbar: {result.error}")
            self.button.class_name = 'btn btn-warning'
            self.button.text = LABEL_FAILED

        delay = self._config.toolbar_reset_delay
        if delay > 0:
            await asyncio.sleep(delay)
        self._reset_button()

    def _reset_button(self):
        if self.button is None:
            return
        self.button.class_name = 'btn btn-default'
        self.button.text = LABEL_IDLE
        self.button.disabled = False

    def remove(self):
        if self.toolbar is not None and self.toolbar.attached:
            self.button.remove()
            self.toolbar.remove()
            logger.info("POS toolbar removed")
        self.toolbar = None
        self.button = None

    def get_debug_info(self) -> dict:
        return {
            'toolbar_present': self.toolbar is not None,
            'button_present': self.button is not None,
            'button_disabled': self.button.disabled if self.button is not None else None,
            'on_pos_page': self.on_pos_page(),
        }
