"""
Tray service availability detection.

A single zero-retry connection attempt decides whether the tray service is
there. The answer is cached for the page lifetime so later drawer operations
do not pay a connection timeout each time the service is absent.
"""

import asyncio
import enum
import logging

logger = logging.getLogger('till.bridge.availability')


class AvailabilityState(enum.Enum):
    UNKNOWN = 'unknown'
    AVAILABLE = 'available'
    UNAVAILABLE = 'unavailable'


class AvailabilityProbe:
    """Caches the tri-state reachability of the tray service."""

    def __init__(self, tray, auth=None):
        self._tray = tray
        self._auth = auth
        self._state = AvailabilityState.UNKNOWN
        self._pending: asyncio.Future | None = None
        self._generation = 0

    @property
    def state(self) -> AvailabilityState:
        return self._state

    def is_available(self) -> bool | None:
        """True, False, or None when not yet checked."""
        if self._state is AvailabilityState.UNKNOWN:
            return None
        return self._state is AvailabilityState.AVAILABLE

    async def check_availability(self) -> bool:
        """
        Return whether the tray service is reachable.

        Uses the cached answer when there is one. Concurrent callers share
        the probe already in flight.
        """
        if self._state is not AvailabilityState.UNKNOWN:
            logger.debug(f"Using cached availability: {self._state.value}")
            return self._state is AvailabilityState.AVAILABLE

        if self._pending is None:
            logger.debug("Checking tray service availability")
            self._pending = asyncio.ensure_future(self._probe(self._generation))
        else:
            logger.debug("Availability check already in progress")

        available = await asyncio.shield(self._pending)

        # mark_unavailable() during the probe outranks the probe's answer
        if self._state is AvailabilityState.UNAVAILABLE:
            return False
        return available

    async def _probe(self, generation: int) -> bool:
        if self._tray.is_active():
            # The open socket belongs to a drawer operation; leave it alone
            logger.debug("Tray connection already open, service is available")
            available = True
        else:
            available = await self._connect_once()

        if generation == self._generation:
            self._state = AvailabilityState.AVAILABLE if available else AvailabilityState.UNAVAILABLE
            self._pending = None
        return available

    async def _connect_once(self) -> bool:
        if self._auth is not None:
            self._auth.setup_security(self._tray)

        try:
            await self._tray.connect(retries=0, delay=0)
        except Exception as e:
            logger.info(f"Tray service not available: {e}")
            return False

        try:
            await self._tray.disconnect()
        except Exception as e:
            logger.debug(f"Ignoring disconnect error after probe: {e}")
        return True

    async def recheck_availability(self) -> bool:
        """Drop the cached answer and probe again."""
        logger.debug("Forcing availability recheck")
        self._generation += 1
        self._state = AvailabilityState.UNKNOWN
        self._pending = None
        return await self.check_availability()

    def mark_unavailable(self):
        """Record a live connection failure so later checks short-circuit."""
        logger.info("Tray service marked unavailable")
        self._generation += 1
        self._state = AvailabilityState.UNAVAILABLE
        self._pending = None

    def get_status(self) -> dict:
        return {
            'available': self.is_available(),
            'state': self._state.value,
            'check_in_progress': self._pending is not None,
        }
