"""SMTP mailer for the email action."""

from storeflow.infrastructure.external.email.smtp_mailer import SmtpMailer, build_mailer

__all__ = ["SmtpMailer", "build_mailer"]
