"""
Outbound SMS delivery

Two backends, selected by settings.SMS_BACKEND:
- "log": writes the message to the application log (local development only)
- "http": POSTs the message as JSON to settings.SMS_GATEWAY_URL
"""
import logging
from typing import Optional

import httpx

from clinic_backend.core.config import settings
from clinic_backend.core.errors import NotificationError

logger = logging.getLogger(__name__)


class SmsSender:
    """Interface of every SMS backend"""

    def send(self, to: str, message: str) -> None:
        """
        Deliver `message` to the phone number `to`

        Raises:
            NotificationError: If the message could not be handed to the gateway
        """
        raise NotImplementedError


class LogSmsSender(SmsSender):
    def send(self, to: str, message: str) -> None:
        logger.info("SMS to %s: %s", to, message)


class HttpSmsSender(SmsSender):
    def __init__(
        self,
        gateway_url: str,
        api_key: Optional[str] = None,
        sender_id: str = "CLINIC",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.gateway_url = gateway_url
        self.sender_id = sender_id
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = httpx.Client(timeout=timeout, headers=headers, transport=transport)

    def send(self, to: str, message: str) -> None:
        try:
            response = self._client.post(
                self.gateway_url,
                json={"to": to, "from": self.sender_id, "message": message},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("SMS gateway rejected message to %s: HTTP %s", to, e.response.status_code)
            raise NotificationError() from e
        except httpx.HTTPError as e:
            logger.error("SMS gateway unreachable: %s", e)
            raise NotificationError() from e


def send_best_effort(sender: SmsSender, to: Optional[str], message: str) -> bool:
    """Send a non-essential message; failures are logged, never raised"""
    if not to:
        return False
    try:
        sender.send(to, message)
        return True
    except NotificationError:
        logger.warning("Best-effort SMS to %s was not delivered", to)
        return False


_sender: Optional[SmsSender] = None


def get_sms_sender() -> SmsSender:
    """Dependency returning the process-wide SMS sender configured in settings"""
    global _sender
    if _sender is None:
        if settings.SMS_BACKEND == "http":
            if not settings.SMS_GATEWAY_URL:
                raise RuntimeError("SMS_BACKEND=http requires SMS_GATEWAY_URL")
            _sender = HttpSmsSender(
                settings.SMS_GATEWAY_URL,
                api_key=settings.SMS_API_KEY,
                sender_id=settings.SMS_SENDER_ID,
                timeout=settings.SMS_TIMEOUT_SECONDS,
            )
        else:
            _sender = LogSmsSender()
    return _sender
