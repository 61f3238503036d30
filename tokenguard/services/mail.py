"""Token notification mails."""

import logging

from tokenguard.services.events import ActivationTokenCreated, EventPublisher, PasswordResetTokenCreated

logger = logging.getLogger("tokenguard")


class ConsoleMailSender:
    """Delivers token mails by writing the link to the server log."""

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url.rstrip("/")

    def register(self, publisher: EventPublisher) -> None:
        publisher.subscribe(ActivationTokenCreated, self.send_activation_token)
        publisher.subscribe(PasswordResetTokenCreated, self.send_password_reset_token)

    def send_activation_token(self, event: ActivationTokenCreated) -> None:
        logger.info(
            "ACTIVATION MAIL to %s: %s/activate?token=%s (valid until %s)",
            event.email,
            self.base_url,
            event.token.plaintext,
            event.token.expiry.isoformat(),
        )

    def send_password_reset_token(self, event: PasswordResetTokenCreated) -> None:
        logger.info(
            "PASSWORD RESET MAIL to %s: %s/reset-password?token=%s (valid until %s)",
            event.email,
            self.base_url,
            event.token.plaintext,
            event.token.expiry.isoformat(),
        )
