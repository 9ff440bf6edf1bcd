import logging
from typing import Optional

from twilio.base.exceptions import TwilioException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from ...application.ports.notifier import Notifier
from ...core.config import Settings
from ...exceptions import ConfigurationError
from ...utils import mask_phone

logger = logging.getLogger(__name__)


class TwilioSmsNotifier(Notifier):
    """Sends verification codes as SMS through the Twilio Messaging API."""

    def __init__(self, settings: Settings, client: Optional[Client] = None):
        if not settings.TWILIO_PHONE_NUMBER:
            raise ConfigurationError("TWILIO_PHONE_NUMBER is not configured")
        if client is None:
            if not settings.TWILIO_ACCOUNT_SID or not settings.TWILIO_AUTH_TOKEN:
                raise ConfigurationError("Twilio credentials are not configured")
            # Retries stay off: delivery failures go back to the caller
            client = Client(
                settings.TWILIO_ACCOUNT_SID,
                settings.TWILIO_AUTH_TOKEN,
                http_client=TwilioHttpClient(timeout=15),
            )
        self.client = client
        self.from_number = settings.TWILIO_PHONE_NUMBER
        self.message_template = settings.SMS_MESSAGE_TEMPLATE

    def send_verification_code(self, phone_number: str, code: str) -> bool:
        masked = mask_phone(phone_number)
        logger.info(f"Sending SMS to {masked}")
        try:
            message = self.client.messages.create(
                body=self.message_template.format(code=code),
                from_=self.from_number,
                to=phone_number,
            )
        except TwilioException as e:
            logger.error(f"Twilio error when sending SMS to {masked}: {e}")
            return False
        logger.info(f"Successfully sent SMS to {masked} (sid={message.sid})")
        return True
