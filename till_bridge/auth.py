"""
Certificate and signature relay.

The tray service asks for a certificate when we connect and a signature for
every call. Both come from the backend. When the backend cannot help we
answer with an empty string, which lets the tray service fall back to its
own "allow this site" prompt instead of failing the sale.
"""

import logging

import httpx

logger = logging.getLogger('till.bridge.auth')


def _error_message(response: httpx.Response, fallback: str) -> str:
    """Build 'message (CODE)' from a JSON error body, else the fallback."""
    try:
        body = response.json()
    except ValueError:
        return fallback

    if not isinstance(body, dict) or not body.get('error'):
        return fallback
    return f"{body['error']} ({body.get('error_code', 'UNKNOWN_ERROR')})"


class AuthBridge:
    """Fetches the certificate and signs challenges through the backend."""

    def __init__(self, config, http: httpx.AsyncClient, notifier):
        self._config = config
        self._http = http
        self._notifier = notifier

    def setup_security(self, tray):
        """Point the tray client's certificate and signature hooks at us."""
        tray.set_certificate_provider(self.get_certificate)
        tray.set_signature_provider(self.sign)

    async def get_certificate(self) -> str:
        """Certificate text, or '' if it cannot be loaded."""
        try:
            response = await self._http.get(
                self._config.api_url('/certificate'),
                headers={'Cache-Control': 'no-store'},
            )
        except httpx.HTTPError as e:
            return await self._certificate_failed(str(e) or type(e).__name__)

        if not response.is_success:
            return await self._certificate_failed(_error_message(response, 'Certificate not configured'))

        return response.text

    async def sign(self, challenge: str) -> str:
        """Base64 signature for a challenge, or '' if signing fails."""
        try:
            response = await self._http.post(
                self._config.api_url('/sign'),
                json={'message': challenge},
            )
        except httpx.HTTPError as e:
            return await self._signing_failed(str(e) or type(e).__name__)

        if not response.is_success:
            return await self._signing_failed(_error_message(response, 'Signing failed'))

        return response.text

    async def _certificate_failed(self, reason: str) -> str:
        logger.error(f"Failed to load certificate: {reason}")
        await self._notifier.log_error(
            f"Certificate loading failed: {reason}",
            context='qztray_certificate_load',
        )
        return ''

    async def _signing_failed(self, reason: str) -> str:
        logger.error(f"Failed to sign message: {reason}")
        await self._notifier.log_error(
            f"Message signing failed: {reason}",
            context='qztray_message_signing',
        )
        return ''

    async def check_certificate_status(self) -> dict:
        """Whether the backend has a certificate configured."""
        try:
            response = await self._http.get(
                self._config.api_url('/certificate'),
                headers={'Cache-Control': 'no-store'},
            )
        except httpx.HTTPError as e:
            logger.info("Certificates: unable to check configuration status")
            return {'configured': False, 'message': 'Unable to check configuration status', 'error': str(e)}

        if response.is_success:
            logger.info("Certificates: configured and ready")
            return {'configured': True, 'message': 'Configured and ready'}

        logger.info("Certificates: not configured, operations will require user trust prompts")
        return {
            'configured': False,
            'message': 'Not configured - operations will require user trust prompts',
        }
