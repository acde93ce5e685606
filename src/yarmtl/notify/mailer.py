"""
Reminder emails.

The message body lists each reminder with its reason, deadline, reminder
date and tags. Delivery goes through smtplib with STARTTLS.
"""

import logging
import smtplib
from email.message import EmailMessage
from typing import List, Sequence

from yarmtl.config import EmailConfig
from yarmtl.scheduler.queries import Reminder
from yarmtl.utils.dates import format_date

log = logging.getLogger(__name__)

SUBJECT = "Task Reminders - YARMTL"

_SMTP_TIMEOUT = 30.0


def format_email_body(reminders: Sequence[Reminder]) -> str:
    lines: List[str] = ["Task Reminders", ""]

    for reminder in reminders:
        task = reminder.task
        lines.append(f"{reminder.reason.upper()}: {task.description}")
        if task.deadline is not None:
            lines.append(f"  Deadline: {format_date(task.deadline)}")
        if task.reminder is not None:
            lines.append(f"  Reminder: {format_date(task.reminder)}")
        if task.tags:
            lines.append(f"  Tags: {' '.join(f'#{t}' for t in sorted(task.tags))}")
        lines.append("")

    return "\n".join(lines)


def build_message(config: EmailConfig, reminders: Sequence[Reminder]) -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = SUBJECT
    message["From"] = config.from_email
    message["To"] = config.to_email
    message.set_content(format_email_body(reminders))
    return message


class EmailNotifier:
    """
    Sends reminder digests over SMTP.

    Usage:
        notifier = EmailNotifier(load_email_config(path))
        notifier.send(reminders)
    """

    def __init__(self, config: EmailConfig, smtp_factory=smtplib.SMTP) -> None:
        self._config = config
        self._smtp_factory = smtp_factory

    def send(self, reminders: Sequence[Reminder]) -> int:
        """
        Email the reminders. Nothing is sent for an empty list.

        Returns:
            Number of reminders sent

        Raises:
            smtplib.SMTPException, OSError: on delivery failure
        """
        if not reminders:
            log.info("No tasks requiring reminders")
            return 0

        message = build_message(self._config, reminders)
        with self._smtp_factory(self._config.smtp_server, self._config.smtp_port, timeout=_SMTP_TIMEOUT) as smtp:
            smtp.starttls()
            smtp.login(self._config.username, self._config.password)
            smtp.send_message(message)

        log.info("Sent %d reminder(s) to %s", len(reminders), self._config.to_email)
        return len(reminders)
