"""Email notification service using Resend API."""
import asyncio
import logging
from typing import Callable, Optional, Set

import resend

from payout_engine.config import settings

logger = logging.getLogger(__name__)

# Configure Resend API
resend.api_key = settings.RESEND_API_KEY

BRAND_PRIMARY = "#1d4ed8"
BRAND_SUCCESS = "#10b981"
BRAND_DANGER = "#ef4444"
BRAND_DARK = "#1f2937"
BRAND_LIGHT = "#f9fafb"

VERIFICATION_LABELS = {
    "identity": "Identity",
    "bank": "Bank account",
    "phone": "Phone number",
}

# Strong references to detached notification tasks until they finish
_background_tasks: Set[asyncio.Task] = set()


def get_email_template(title: str, content: str, cta_text: str = None, cta_url: str = None, cta_color: str = BRAND_PRIMARY) -> str:
    """
    Generate a branded email template.

    Args:
        title: Email title/heading
        content: HTML content for the email body
        cta_text: Optional call-to-action button text
        cta_url: Optional call-to-action button URL
        cta_color: Button background color

    Returns:
        Complete HTML email template
    """
    cta_button = ""
    if cta_text and cta_url:
        cta_button = f"""
        <div style="text-align: center; margin: 30px 0;">
            <a href="{cta_url}" style="display: inline-block; background-color: {cta_color}; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; font-weight: 600; font-size: 16px;">
                {cta_text}
            </a>
        </div>
        """

    return f"""
    <!DOCTYPE html>
    <html>
        <head>
            <meta charset="utf-8">
            <meta name="viewport" content="width=device-width, initial-scale=1.0">
        </head>
        <body style="margin: 0; padding: 0; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif; background-color: #f3f4f6;">
            <table width="100%" cellpadding="0" cellspacing="0" style="background-color: #f3f4f6; padding: 40px 20px;">
                <tr>
                    <td align="center">
                        <table width="600" cellpadding="0" cellspacing="0" style="background-color: white; border-radius: 12px; overflow: hidden;">
                            <tr>
                                <td style="background-color: {BRAND_PRIMARY}; padding: 30px 40px; text-align: center;">
                                    <h2 style="margin: 0; color: white; font-size: 22px; font-weight: 600;">{title}</h2>
                                </td>
                            </tr>
                            <tr>
                                <td style="padding: 40px; color: {BRAND_DARK}; font-size: 16px; line-height: 1.6;">
                                    {content}
                                    {cta_button}
                                </td>
                            </tr>
                            <tr>
                                <td style="background-color: {BRAND_LIGHT}; padding: 24px 40px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 13px;">
                                    This is an automated message about organizer payouts.
                                </td>
                            </tr>
                        </table>
                    </td>
                </tr>
            </table>
        </body>
    </html>
    """


def dispatch_in_background(send: Callable[..., bool], *args) -> Optional[asyncio.Task]:
    """
    Run a blocking ``EmailService`` send on a worker thread without awaiting it.

    The caller's request never waits on, or fails because of, the send.
    """
    async def _run():
        try:
            await asyncio.to_thread(send, *args)
        except Exception as e:
            logger.error(f"Background notification {getattr(send, '__name__', send)} failed: {e}")

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.warning("No running event loop, notification skipped")
        return None

    task = loop.create_task(_run())
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


async def drain_background_tasks(timeout: float = 10.0) -> None:
    """Wait for in-flight notifications, e.g. on shutdown."""
    if not _background_tasks:
        return
    done, pending = await asyncio.wait(set(_background_tasks), timeout=timeout)
    if pending:
        logger.warning(f"{len(pending)} notification task(s) still running at shutdown")


class EmailService:
    """Service for sending payout notifications via Resend."""

    @staticmethod
    def send_verification_submitted_email(organizer_id: str, doc_type: str, destination_id: Optional[str] = None) -> bool:
        """
        Notify admins that an organizer submitted verification evidence.

        Returns:
            True if email sent successfully, False otherwise
        """
        try:
            if not settings.RESEND_API_KEY:
                logger.warning("RESEND_API_KEY not configured, skipping email")
                return False

            recipients = settings.admin_email_list
            if not recipients:
                logger.warning("ADMIN_EMAILS not configured, skipping verification notification")
                return False

            label = VERIFICATION_LABELS.get(doc_type, doc_type)
            review_url = f"{settings.FRONTEND_URL}/admin/verify?organizer={organizer_id}"
            destination_line = ""
            if destination_id:
                destination_line = f"<p style=\"margin: 0 0 12px 0;\">Destination: <code>{destination_id}</code></p>"

            content = f"""
            <p style="margin: 0 0 20px 0;">A new <strong>{label}</strong> verification is waiting for review.</p>
            <p style="margin: 0 0 12px 0;">Organizer: <code>{organizer_id}</code></p>
            {destination_line}
            """

            html_content = get_email_template(
                title=f"{label} verification submitted",
                content=content,
                cta_text="Review submission",
                cta_url=review_url,
            )

            resend.Emails.send({
                "from": settings.EMAIL_FROM,
                "to": recipients,
                "subject": f"Verification pending review: {label}",
                "html": html_content
            })

            logger.info(f"Verification submitted email sent for organizer {organizer_id} ({doc_type})")
            return True

        except Exception as e:
            logger.error(f"Failed to send verification submitted email: {e}")
            return False

    @staticmethod
    def send_verification_reviewed_email(email: str, doc_type: str, status: str, reason: Optional[str] = None) -> bool:
        """Tell the organizer the outcome of a verification review."""
        try:
            if not settings.RESEND_API_KEY:
                logger.warning("RESEND_API_KEY not configured, skipping email")
                return False

            label = VERIFICATION_LABELS.get(doc_type, doc_type)
            approved = status == "verified"
            if approved:
                content = f"<p style=\"margin: 0;\">Your <strong>{label}</strong> verification was approved.</p>"
            else:
                content = f"""
                <p style="margin: 0 0 16px 0;">Your <strong>{label}</strong> verification was not approved.</p>
                <p style="margin: 0; padding: 12px; background-color: {BRAND_LIGHT}; border-left: 4px solid {BRAND_DANGER};">{reason or ''}</p>
                """

            html_content = get_email_template(
                title="Verification approved" if approved else "Verification needs attention",
                content=content,
                cta_text="Open payout settings",
                cta_url=f"{settings.FRONTEND_URL}/organizer/settings/payouts",
                cta_color=BRAND_SUCCESS if approved else BRAND_DANGER,
            )

            resend.Emails.send({
                "from": settings.EMAIL_FROM,
                "to": email,
                "subject": f"{label} verification {'approved' if approved else 'rejected'}",
                "html": html_content
            })

            logger.info(f"Verification review email sent to {email} ({doc_type}: {status})")
            return True

        except Exception as e:
            logger.error(f"Failed to send verification review email: {e}")
            return False
