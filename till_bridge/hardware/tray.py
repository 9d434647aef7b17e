"""
WebSocket client for the local tray service.

The tray service owns the printers. We connect, present a certificate, and
send signed calls; each call is answered by a reply carrying the same uid.
"""

import asyncio
import logging
from typing import Awaitable, Callable

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..errors import (
    CertificateFailure,
    DaemonUnavailable,
    DrawerCommandFailure,
    DrawerError,
    PrinterResolutionFailure,
    SigningFailure,
)
from ..protocol import (
    CALL_FIND,
    CALL_GET_DEFAULT,
    CALL_PRINT,
    CODE_CERTIFICATE,
    CODE_PRINTER,
    CODE_SIGNATURE,
    call_message,
    certificate_message,
    generate_uid,
    parse_reply,
    raw_print_params,
    signing_payload,
    timestamp_ms,
)

logger = logging.getLogger('till.bridge.tray')

CertificateProvider = Callable[[], Awaitable[str]]
SignatureProvider = Callable[[str], Awaitable[str]]

_REPLY_ERRORS = {
    CODE_CERTIFICATE: CertificateFailure,
    CODE_SIGNATURE: SigningFailure,
    CODE_PRINTER: PrinterResolutionFailure,
}


class TrayClient:
    """Connection to the tray service. One socket at a time."""

    def __init__(
        self,
        url: str,
        connect_timeout: float = 5.0,
        call_timeout: float = 10.0,
        retries: int = 2,
        retry_delay: float = 1.0,
    ):
        self.url = url
        self._connect_timeout = connect_timeout
        self._call_timeout = call_timeout
        self._retries = retries
        self._retry_delay = retry_delay
        self._ws = None
        self._reader: asyncio.Task | None = None
        self._pending: dict[str, asyncio.Future] = {}
        self._certificate_provider: CertificateProvider | None = None
        self._signature_provider: SignatureProvider | None = None

    @classmethod
    def from_config(cls, config) -> 'TrayClient':
        return cls(
            url=config.tray_url,
            connect_timeout=config.tray_connect_timeout,
            call_timeout=config.tray_call_timeout,
            retries=config.tray_retries,
            retry_delay=config.tray_retry_delay,
        )

    # ─── Security ───────────────────────────────────────────────────────

    def set_certificate_provider(self, provider: CertificateProvider | None):
        self._certificate_provider = provider

    def set_signature_provider(self, provider: SignatureProvider | None):
        self._signature_provider = provider

    # ─── Connection ─────────────────────────────────────────────────────

    def is_active(self) -> bool:
        return self._ws is not None

    async def connect(self, retries: int | None = None, delay: float | None = None):
        """
        Open the socket and present the certificate.

        Args:
            retries: Extra attempts after the first (default from config)
            delay: Seconds between attempts (default from config)

        Raises:
            DaemonUnavailable: every attempt failed
        """
        if self.is_active():
            return

        retries = self._retries if retries is None else retries
        delay = self._retry_delay if delay is None else delay

        last_error = None
        for attempt in range(retries + 1):
            try:
                self._ws = await websockets.connect(self.url, open_timeout=self._connect_timeout)
                break
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                last_error = e
                logger.debug(f"Connect attempt {attempt + 1}/{retries + 1} to {self.url} failed: {e}")
                if attempt < retries and delay:
                    await asyncio.sleep(delay)
        else:
            raise DaemonUnavailable(
                f"Unable to establish connection with the tray service at {self.url}",
                {'url': self.url, 'cause': str(last_error)},
            ) from last_error

        certificate = ''
        if self._certificate_provider is not None:
            certificate = await self._certificate_provider()

        try:
            await self._ws.send(certificate_message(certificate))
        except ConnectionClosed as e:
            self._ws = None
            raise DaemonUnavailable("Tray service closed the connection during handshake") from e

        self._reader = asyncio.create_task(self._read_loop())
        logger.info(f"Connected to tray service at {self.url}")

    async def disconnect(self):
        """Close the socket. Pending calls fail with DaemonUnavailable."""
        ws, self._ws = self._ws, None
        reader, self._reader = self._reader, None

        if ws is not None:
            try:
                await ws.close()
            finally:
                if reader is not None:
                    reader.cancel()
                self._fail_pending(DaemonUnavailable("Disconnected from tray service"))
                logger.debug("Disconnected from tray service")

    async def _read_loop(self):
        ws = self._ws
        try:
            async for raw in ws:
                try:
                    reply = parse_reply(raw)
                except ValueError as e:
                    logger.warning(f"Ignoring tray message: {e}")
                    continue

                future = self._pending.pop(reply['uid'], None)
                if future is None or future.done():
                    continue

                if reply.get('error'):
                    future.set_exception(self._reply_error(reply))
                else:
                    future.set_result(reply.get('result'))
        except ConnectionClosed:
            pass
        finally:
            if self._ws is ws:
                self._ws = None
            self._fail_pending(DaemonUnavailable("Connection to tray service lost"))

    def _fail_pending(self, error: DrawerError):
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(error)

    @staticmethod
    def _reply_error(reply: dict) -> DrawerError:
        error_cls = _REPLY_ERRORS.get(reply.get('code'), DrawerCommandFailure)
        return error_cls(str(reply['error']), {'code': reply.get('code')})

    # ─── Calls ──────────────────────────────────────────────────────────

    async def call(self, method: str, params: dict | None = None):
        """Send a signed call and wait for its reply."""
        ws = self._ws
        if ws is None:
            raise DaemonUnavailable("Not connected to tray service")

        params = params or {}
        uid = generate_uid()
        timestamp = timestamp_ms()

        signature = ''
        if self._signature_provider is not None:
            signature = await self._signature_provider(signing_payload(method, params, timestamp))

        future = asyncio.get_running_loop().create_future()
        self._pending[uid] = future

        try:
            await ws.send(call_message(method, params, uid, timestamp, signature))
        except ConnectionClosed as e:
            self._pending.pop(uid, None)
            raise DaemonUnavailable("Connection to tray service lost") from e

        try:
            return await asyncio.wait_for(future, timeout=self._call_timeout)
        except asyncio.TimeoutError as e:
            self._pending.pop(uid, None)
            raise DaemonUnavailable(
                f"Tray service did not answer {method} within {self._call_timeout}s",
                {'call': method},
            ) from e

    async def get_default_printer(self) -> str:
        return await self.call(CALL_GET_DEFAULT) or ''

    async def find_printers(self, query: str | None = None) -> list[str]:
        params = {'query': query} if query else {}
        result = await self.call(CALL_FIND, params)
        if isinstance(result, str):
            return [result]
        return list(result or [])

    async def print_raw(self, printer: str, data: bytes):
        """Send raw bytes to a printer, e.g. a drawer kick command."""
        await self.call(CALL_PRINT, raw_print_params(printer, data))
        logger.info(f"Raw job ({len(data)} bytes) sent to {printer}")
