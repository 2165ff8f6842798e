"""
Provides account notifications: verification codes, reset links, lockouts.

Notifications are sent only after the change that prompted them has been
committed. A failure to deliver is logged and raised as
:class:`NotificationFailed`; it is never swallowed.
"""

from datetime import datetime
from email.message import EmailMessage
import logging
import smtplib

from . import util
from .exceptions import NotificationFailed

logger = logging.getLogger(__name__)


class Notifier(object):
    """Base class for notification senders."""

    def send_verification_code(self, email: str, code: str,
                               public_id: str) -> None:
        """Send an e-mail verification code to a new account."""
        raise NotImplementedError('Must be implemented by a child class')

    def send_password_reset(self, email: str, raw_token: str) -> None:
        """Send a password reset token."""
        raise NotImplementedError('Must be implemented by a child class')

    def send_lockout_notice(self, email: str, unlock_time: datetime) -> None:
        """Tell the account holder that password logins are suspended."""
        raise NotImplementedError('Must be implemented by a child class')


class MailNotifier(Notifier):
    """Sends plain-text notifications via an SMTP service."""

    def __init__(self, host: str = 'localhost', port: int = 25,
                 sender: str = 'no-reply@squadz.app',
                 timeout: float = 30) -> None:
        self._host = host
        self._port = port
        self._sender = sender
        self._timeout = timeout

    def _new_connection(self) -> smtplib.SMTP:
        return smtplib.SMTP(host=self._host, port=self._port,
                            timeout=self._timeout)

    def _message(self, recipient: str, subject: str,
                 body: str) -> EmailMessage:
        message = EmailMessage()
        message['From'] = self._sender
        message['To'] = recipient
        message['Subject'] = subject
        message.set_content(body)
        return message

    def send_message(self, message: EmailMessage) -> None:
        """
        Send a message.

        Raises
        ------
        :class:`NotificationFailed`
            Raised if the SMTP service cannot be reached or refuses the
            message.

        """
        recipient = util.mask_email(str(message['To']))
        try:
            with self._new_connection() as connection:
                connection.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error('Could not send "%s" to %s: %s',
                         message['Subject'], recipient, e)
            raise NotificationFailed('Could not send e-mail') from e
        logger.debug('Sent "%s" to %s', message['Subject'], recipient)

    def send_verification_code(self, email: str, code: str,
                               public_id: str) -> None:
        body = (
            f'Welcome to SQUADZ!\n\n'
            f'Your SQUADZ ID is {public_id}.\n\n'
            f'Your verification code is {code}. '
            f'It expires in a few minutes.\n'
        )
        self.send_message(self._message(email, 'Verify your e-mail', body))

    def send_password_reset(self, email: str, raw_token: str) -> None:
        body = (
            f'Someone asked to reset the password of your SQUADZ account.\n\n'
            f'Your reset token is {raw_token}. It expires in one hour.\n\n'
            f'If this was not you, you can ignore this message.\n'
        )
        self.send_message(self._message(email, 'Reset your password', body))

    def send_lockout_notice(self, email: str, unlock_time: datetime) -> None:
        body = (
            f'Your SQUADZ account was locked after too many failed login '
            f'attempts.\n\n'
            f'You can try again after '
            f'{unlock_time.strftime("%Y-%m-%d %H:%M:%S %Z")}.\n'
        )
        self.send_message(self._message(email, 'Account locked', body))
