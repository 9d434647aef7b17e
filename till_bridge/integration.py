"""
Wires the drawer components together for one page (or one agent process).

    integration = DrawerIntegration(config, page=page)
    await integration.initialize()
"""

import logging

import httpx

from . import __version__
from .auth import AuthBridge
from .availability import AvailabilityProbe
from .controller import DrawerController
from .errors import DrawerError
from .hardware.codes import PrinterCodeRegistry
from .hardware.tray import TrayClient
from .lock import TransactionLock
from .notifier import UNAVAILABLE_MESSAGE, Notifier
from .ui.buttons import ButtonOrchestrator
from .ui.pages import PageRuleEngine
from .ui.toolbar import PosToolbar

logger = logging.getLogger('till.bridge.integration')


class DrawerIntegration:
    """Builds every component from one config and runs the start-up sequence."""

    def __init__(
        self,
        config,
        page=None,
        tray=None,
        http: httpx.AsyncClient | None = None,
        lock: TransactionLock | None = None,
    ):
        self.config = config
        self.page = page
        self.http = http or httpx.AsyncClient(
            timeout=config.http_timeout,
            headers={'User-Agent': config.user_agent},
        )
        self.tray = tray or TrayClient.from_config(config)
        self.lock = lock or TransactionLock()

        self.notifier = Notifier(config, self.http, page)
        self.auth = AuthBridge(config, self.http, self.notifier)
        self.availability = AvailabilityProbe(self.tray, self.auth)
        self.registry = PrinterCodeRegistry.from_config(config.printer_codes)
        self.controller = DrawerController(
            config, self.tray, self.auth, self.availability, self.notifier,
            registry=self.registry, page=page,
        )
        self.rules = PageRuleEngine(page)
        self.buttons = ButtonOrchestrator(
            config, page, self.rules, self.controller, self.availability, self.lock, self.notifier,
        )
        self.toolbar = PosToolbar(config, page, self.controller, self.lock)

        self.initialized = False
        self.certificate_status: dict | None = None

    async def initialize(self) -> dict:
        """
        Check certificates and tray availability, then bind the page.

        Buttons and the toolbar are only wired when the tray service answers;
        otherwise the user is told the drawer will not open.
        """
        if self.initialized:
            logger.debug("Already initialized")
            return self.certificate_status

        logger.info(f"Till Bridge v{__version__} initializing")

        self.certificate_status = await self.auth.check_certificate_status()
        available = await self.availability.check_availability()

        if available:
            logger.info("Tray service available, cash drawer operations enabled")
        else:
            logger.info("Tray service not available, transactions will proceed without drawer operations")
            self.notifier.show_warning(UNAVAILABLE_MESSAGE)

        self.initialized = True

        if available:
            self.buttons.initialize()
            self.toolbar.initialize(drawer_ready=True)
            if self.config.discovery_mode:
                await self.discover_printers()
        else:
            logger.debug("Skipping button replacement, tray service not available")

        return self.certificate_status

    async def discover_printers(self) -> list[str]:
        """Report the printers the tray service sees for the active register."""
        try:
            printers = await self.controller.discover_printers()
        except DrawerError as e:
            logger.warning(f"Printer discovery failed: {e}")
            return []

        register_id = self.config.get_current_register(self.page)
        await self.notifier.log_printers(printers, register_id)
        return printers

    async def open_drawer(self) -> str:
        if not self.initialized:
            raise DrawerError("Till Bridge not initialized")
        return await self.controller.open_drawer()

    def get_debug_info(self) -> dict:
        if not self.initialized:
            return {'initialized': False, 'error': 'Till Bridge not initialized'}

        return {
            'initialized': True,
            'version': __version__,
            'availability': self.availability.get_status(),
            'certificates': self.certificate_status,
            'config': {
                'api_base': self.config.api_base,
                'tray_url': self.config.tray_url,
                'current_register': self.config.get_current_register(self.page),
                'printer': self.config.get_printer(self.page),
            },
            'page': self.rules.get_debug_info(),
            'buttons': self.buttons.get_debug_info(),
            'toolbar': self.toolbar.get_debug_info(),
            'drawer': {
                'operation_in_progress': self.controller.is_operation_in_progress(),
                'locked': self.lock.is_locked(),
            },
        }

    def reset(self):
        self.buttons.reset_buttons()
        self.toolbar.remove()
        self.initialized = False
        logger.debug("Integration reset")

    async def close(self):
        try:
            await self.tray.disconnect()
        finally:
            await self.http.aclose()
