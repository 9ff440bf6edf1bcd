import logging

from ...application.ports.notifier import Notifier
from ...utils import mask_phone

logger = logging.getLogger(__name__)


class LoggingNotifier(Notifier):
    """Development notifier: writes the code to the log instead of sending it."""

    def send_verification_code(self, phone_number: str, code: str) -> bool:
        logger.warning(f"[DEV] Verification code for {mask_phone(phone_number)}: {code}")
        return True
