"""
Email Service using Resend
Provides email functionality using MJML templates for responsive design
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml2html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import payout_sent_template, sync_failure_alert_template

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml2html(mjml_content)
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        # mjml-python returns an object exposing .html
        html = getattr(result, "html", None)
        return html if html is not None else str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise Exception(f"Failed to compile MJML template: {str(e)}") from e


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Send response dict
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise Exception("Email service not configured")

    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(
            {
                "from": from_address or EMAIL_FROM_ADDRESS,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise Exception(f"Failed to send email: {str(e)}") from e


async def send_payout_sent_email(
    to: str,
    affiliate_name: str,
    amount: float,
    commission_count: int,
    method_label: str = "connected Stripe account",
) -> dict:
    """Notify an affiliate that a payout was sent"""
    return await send_email(
        to=to,
        subject=f"Payout Sent: ${amount:,.2f}",
        mjml_content=payout_sent_template(affiliate_name, amount, commission_count, method_label),
    )


async def send_sync_failure_alert(
    to: str,
    schedule_name: str,
    status: str,
    properties_synced: int,
    areas_failed: int,
    errors: list[str],
) -> dict:
    """Alert an admin about a failed or partial scheduled sync"""
    return await send_email(
        to=to,
        subject=f"[Sync Alert] {schedule_name}: {status}",
        mjml_content=sync_failure_alert_template(schedule_name, status, properties_synced, areas_failed, errors),
    )
