from .mailer import EmailNotifier, build_message, format_email_body

__all__ = ["EmailNotifier", "build_message", "format_email_body"]
