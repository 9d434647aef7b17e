"""
User feedback and remote diagnostics.

Messages go into the page's transient result box when there is one, and to
the local log otherwise. Failures are also reported to the backend log
endpoints; those reports are best-effort and never raise.
"""

import html
import logging
import traceback
from dataclasses import dataclass

import httpx

from .errors import CONNECTION, PRINTER, SECURITY, DaemonUnavailable, classify

logger = logging.getLogger('till.bridge.notifier')

TRANSIENT_RESULT_ID = 'transient_result'

ALERT_CLASSES = {
    'success': 'alert-success',
    'info': 'alert-info',
    'warning': 'alert-warning',
    'error': 'alert-danger',
}

UNAVAILABLE_MESSAGE = (
    'Cash register not detected, transactions can continue but any '
    'attached cash drawer will not open.'
)
CONTINUE_NOTICE = ' The transaction will continue normally.'

_USER_MESSAGES = {
    CONNECTION: 'The tray service is not running or not accessible. Please start it and try again.',
    PRINTER: 'Printer not found or not accessible. Please check printer configuration.',
    SECURITY: 'Certificate authentication failed. Please check plugin configuration.',
}
_DEFAULT_USER_MESSAGE = 'Unable to open cash drawer. Please check the tray service connection.'


@dataclass(frozen=True)
class Notice:
    level: str
    message: str


class Notifier:
    """Shows drawer outcomes to the user and reports failures to the backend."""

    def __init__(self, config, http: httpx.AsyncClient | None = None, page=None):
        self._config = config
        self._http = http
        self._page = page
        self.last_notice: Notice | None = None

    @property
    def page_url(self) -> str:
        return getattr(self._page, 'url', '') if self._page is not None else ''

    # ─── User-visible messages ──────────────────────────────────────────

    def show_success(self, message: str):
        self._show('success', message)

    def show_info(self, message: str):
        self._show('info', message)

    def show_warning(self, message: str):
        self._show('warning', message)

    def show_error(self, message: str):
        self._show('error', message)

    def _show(self, level: str, message: str):
        self.last_notice = Notice(level, message)

        element = None
        if self._page is not None:
            element = self._page.get_by_id(TRANSIENT_RESULT_ID)

        if element is None:
            log = logger.info if level in ('success', 'info') else logger.warning
            log(f"{level.capitalize()}: {message}")
            return

        element.replace_with_html(
            f'<div id="{TRANSIENT_RESULT_ID}" class="alert {ALERT_CLASSES[level]}">'
            f'{html.escape(message)}</div>'
        )

    @staticmethod
    def user_message(error: BaseException) -> str:
        """Friendly explanation for a drawer failure."""
        return _USER_MESSAGES.get(classify(error), _DEFAULT_USER_MESSAGE)

    # ─── Remote logging ─────────────────────────────────────────────────

    async def log_error(self, error: str, context: str = 'qztray_operation', details: dict | None = None):
        """Report an error to the backend log endpoint. Never raises."""
        payload = {
            'error': error or 'Unknown error',
            'context': context,
            'user_agent': self._config.user_agent,
            'page_url': self.page_url,
        }
        if details:
            payload.update(details)

        await self._post('/log-error', payload)

    async def log_printers(self, printers: list[str], register_id: str):
        """Report printers discovered for a register. Never raises."""
        await self._post('/log-printer', {
            'printers': list(printers),
            'register_id': register_id,
            'page_url': self.page_url,
        })

    async def _post(self, endpoint: str, payload: dict):
        if self._http is None:
            logger.error(f"No backend client, dropping report for {endpoint}: {payload}")
            return

        try:
            response = await self._http.post(self._config.api_url(endpoint), json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Failed to report to {endpoint}: {e} (original: {payload})")
            return

        if not response.is_success:
            logger.warning(f"Backend answered {response.status_code} to {endpoint}")

    async def handle_error(self, error: BaseException, context: str = 'qztray_operation'):
        """Report a failed drawer operation and tell the user the sale goes on."""
        await self.log_error(
            f"Drawer operation failed: {error}",
            context=context,
            details={
                'error_type': type(error).__name__,
                'stack': ''.join(traceback.format_exception(error)),
            },
        )

        self.show_warning(self.user_message(error) + CONTINUE_NOTICE)

        if isinstance(error, DaemonUnavailable):
            logger.warning(f"Drawer operation failed: {error}")
        else:
            logger.error(f"Drawer operation failed: {error}")
