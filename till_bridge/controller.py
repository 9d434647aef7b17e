"""
Drawer operation orchestration.

One call to open_drawer() is one attempt: connect, pick the printer, send
its kick code, disconnect. There is no automatic retry; the user retries by
clicking again.
"""

import asyncio
import logging
from dataclasses import dataclass

from .errors import (
    DaemonUnavailable,
    DrawerError,
    OperationInProgress,
    PrinterResolutionFailure,
    classify,
    is_connection_error,
)
from .hardware.codes import PrinterCodeRegistry

logger = logging.getLogger('till.bridge.controller')

DRAWER_CONTEXT = 'qztray_drawer_operation'


@dataclass
class DrawerResult:
    """Outcome of a drawer attempt that never raises."""
    ok: bool
    printer: str = ''
    error: BaseException | None = None

    @property
    def error_class(self) -> str | None:
        return classify(self.error) if self.error is not None else None

    def as_dict(self) -> dict:
        return {
            'ok': self.ok,
            'printer': self.printer,
            'error': str(self.error) if self.error is not None else None,
            'error_class': self.error_class,
        }


class DrawerController:
    """Runs drawer-open attempts against the tray service."""

    def __init__(
        self,
        config,
        tray,
        auth,
        availability,
        notifier,
        registry: PrinterCodeRegistry | None = None,
        page=None,
    ):
        self._config = config
        self._tray = tray
        self._auth = auth
        self._availability = availability
        self._notifier = notifier
        self._registry = registry or PrinterCodeRegistry.from_config(config.printer_codes)
        self._page = page
        self._in_progress = False

    @property
    def registry(self) -> PrinterCodeRegistry:
        return self._registry

    def is_operation_in_progress(self) -> bool:
        return self._in_progress

    async def open_drawer(self) -> str:
        """
        Open the cash drawer once.

        Returns:
            The printer the kick code was sent to.

        Raises:
            OperationInProgress: another attempt is running
            DaemonUnavailable: the tray service is known absent or unreachable
            DrawerError: printer or security failure reported by the tray
        """
        if self._in_progress:
            logger.debug("Drawer operation already in progress, skipping")
            raise OperationInProgress()

        self._in_progress = True

        if self._availability.is_available() is False:
            logger.debug("Tray service not available, skipping drawer operation")
            self._in_progress = False
            raise DaemonUnavailable("Tray service not available")

        try:
            return await self._run()
        finally:
            self._release()

    async def _run(self) -> str:
        self._auth.setup_security(self._tray)

        try:
            await self._tray.connect()
            printer = await self._resolve_printer()
            data = self._registry.resolve(printer)
            logger.debug(f"Using printer {printer!r}, drawer code {list(data)}")
            await self._tray.print_raw(printer, data)
        except Exception as e:
            if is_connection_error(e):
                self._availability.mark_unavailable()
            await self._notifier.handle_error(e, DRAWER_CONTEXT)
            await self._disconnect()
            raise

        logger.info(f"Cash drawer opened via {printer}")
        self._notifier.show_success('Cash drawer opened successfully')
        await self._disconnect()
        return printer

    async def _resolve_printer(self) -> str:
        """Register-mapped printer, else the tray service's default."""
        printer = self._config.get_printer(self._page)
        if printer:
            return printer

        try:
            printer = await self._tray.get_default_printer()
        except DaemonUnavailable:
            raise
        except DrawerError as e:
            raise PrinterResolutionFailure(f"Could not get default printer: {e.message}") from e

        if not printer:
            raise PrinterResolutionFailure("No printer mapped to this register and no default printer")
        return printer

    async def _disconnect(self):
        try:
            await self._tray.disconnect()
        except Exception as e:
            logger.debug(f"Ignoring disconnect error: {e}")

    def _release(self):
        cooldown = self._config.drawer_cooldown
        if cooldown <= 0:
            self._in_progress = False
            return
        asyncio.get_running_loop().call_later(cooldown, self._clear_in_progress)

    def _clear_in_progress(self):
        self._in_progress = False

    async def attempt(self) -> DrawerResult:
        """open_drawer() as a typed result; never raises."""
        try:
            printer = await self.open_drawer()
        except Exception as e:
            return DrawerResult(ok=False, error=e)
        return DrawerResult(ok=True, printer=printer)

    async def discover_printers(self) -> list[str]:
        """List the printers the tray service can see."""
        self._auth.setup_security(self._tray)
        await self._tray.connect()
        try:
            printers = await self._tray.find_printers()
        finally:
            await self._disconnect()
        logger.info(f"Discovered {len(printers)} printer(s)")
        return printers
