"""
Default account mailer.

Records that a confirmation or reset message would be dispatched. Real
delivery is an external integration plugged in behind IAccountMailer.
"""

import logging

from ...application.interfaces.mailer import IAccountMailer
from ...domain.entities import Account

logger = logging.getLogger(__name__)


class LoggingAccountMailer(IAccountMailer):
    """Mailer that only logs the dispatch, never the token itself."""

    async def send_confirmation(self, account: Account, token: str) -> None:
        logger.info(f"Email confirmation dispatched for account {account.id}")

    async def send_password_reset(self, account: Account, token: str) -> None:
        logger.info(f"Password reset dispatched for account {account.id}")
