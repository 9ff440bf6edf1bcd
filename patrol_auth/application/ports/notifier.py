from typing import Protocol


class Notifier(Protocol):
    def send_verification_code(self, phone_number: str, code: str) -> bool:
        """Deliver the code out-of-band. Returns False when delivery failed."""
        ...
