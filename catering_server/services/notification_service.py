"""
通知服务
支付确认、订单确认、尾款链接等邮件。发送失败只记日志，不影响支付流程。
"""

import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from ..models.base import cents_to_dollars
from ..models.quote import CateringQuote

logger = logging.getLogger(__name__)


class NotificationService:
    """邮件通知（未配置 SMTP 时只写日志）"""

    def __init__(self, settings):
        self.settings = settings

    def send_deposit_confirmation(self, quote: CateringQuote, amount_cents: int,
                                  balance_link: Optional[str] = None) -> bool:
        lines = [
            f"Thank you! We received your deposit of ${cents_to_dollars(amount_cents):.2f} "
            f"for catering quote {quote.id[:8]}.",
            f"Event date: {quote.event_details.date}",
            f"Remaining balance: ${cents_to_dollars(quote.pricing.balance_cents):.2f}",
        ]
        if balance_link:
            lines.append(f"Pay the balance here: {balance_link}")
        return self._send(str(quote.customer_email), "Catering deposit received", "\n".join(lines))

    def send_balance_confirmation(self, quote: CateringQuote, amount_cents: int) -> bool:
        body = (
            f"Your balance payment of ${cents_to_dollars(amount_cents):.2f} for quote "
            f"{quote.id[:8]} is complete. Total paid: "
            f"${cents_to_dollars(quote.pricing.total_cents):.2f}."
        )
        return self._send(str(quote.customer_email), "Catering balance paid", body)

    def send_order_confirmation(self, quote: CateringQuote) -> bool:
        event = quote.event_details
        body = "\n".join([
            f"Your catering order for {event.guest_count} guests is confirmed.",
            f"Event date: {event.date}",
            f"Location: {event.location.address}",
            f"Questions? Email {self.settings.contact_email} or call {self.settings.contact_phone}.",
        ])
        return self._send(str(quote.customer_email), "Catering order confirmed", body)

    def send_balance_link(self, quote: CateringQuote, link: str, urgency: str) -> bool:
        subject = "Catering balance payment due"
        if urgency == "urgent":
            subject = "URGENT: " + subject
        body = "\n".join([
            f"The remaining balance of ${cents_to_dollars(quote.pricing.balance_cents):.2f} "
            f"for your event on {quote.event_details.date} is ready to pay.",
            f"Pay securely here: {link}",
            f"This link expires in {self.settings.payment_token_expire_hours} hours.",
        ])
        return self._send(str(quote.customer_email), subject, body)

    def _send(self, to: str, subject: str, body: str) -> bool:
        if not self.settings.smtp_host:
            logger.info("Email to %s (%s) not sent, SMTP is not configured", to, subject)
            return False

        message = EmailMessage()
        message["From"] = self.settings.smtp_sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        try:
            with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=10) as smtp:
                if self.settings.smtp_use_tls:
                    smtp.starttls()
                if self.settings.smtp_username:
                    smtp.login(self.settings.smtp_username, self.settings.smtp_password or "")
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError):
            logger.exception("Failed to send email to %s (%s)", to, subject)
            return False

        logger.info("Sent email to %s (%s)", to, subject)
        return True
