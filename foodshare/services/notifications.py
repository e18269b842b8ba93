"""Notification dispatcher: templated emails over the Mailgun HTTP API.

Sending is best-effort. ``send`` reports success as a boolean; callers in the
post lifecycle never let a failed or slow send affect a transition.
"""
import enum
import logging
from html import escape
from typing import Any

import httpx

from foodshare.config import get_settings

logger = logging.getLogger(__name__)

MAILGUN_US_BASE = "https://api.mailgun.net"


class NotificationKind(str, enum.Enum):
    verification_otp = "verification_otp"
    login_otp = "login_otp"
    donation_claimed = "donation_claimed"
    request_fulfilled = "request_fulfilled"
    status_update = "status_update"
    rating_received = "rating_received"


def send_email(to_email: str, to_name: str, subject: str, html_content: str, text_content: str | None = None) -> bool:
    """Send email via Mailgun. Returns True if accepted, False when unconfigured or on any failure."""
    settings = get_settings()
    if not (settings.mailgun_api_key and settings.mailgun_domain):
        logger.warning(
            "Email NOT SENT: to=%s subject=%s. MAILGUN_API_KEY=%s MAILGUN_DOMAIN=%s",
            to_email,
            subject,
            "set" if settings.mailgun_api_key else "MISSING",
            "set" if settings.mailgun_domain else "MISSING",
        )
        return False

    base = (settings.mailgun_base_url or MAILGUN_US_BASE).strip().rstrip("/")
    domain = settings.mailgun_domain.lower()
    from_addr = settings.mailgun_from_email
    from_domain = from_addr.split("@")[-1].lower() if "@" in from_addr else ""
    if from_domain != domain:
        # Mailgun rejects a sender outside the sending domain
        from_addr = f"noreply@{domain}"
    recipient = f"{to_name} <{to_email}>" if to_name else to_email
    data = {
        "from": f"{settings.mailgun_from_name} <{from_addr}>",
        "to": recipient,
        "subject": subject,
        "text": text_content or "",
        "html": html_content or "",
    }
    try:
        with httpx.Client(timeout=settings.notification_timeout_seconds) as client:
            r = client.post(f"{base}/v3/{domain}/messages", auth=("api", settings.mailgun_api_key), data=data)
    except httpx.HTTPError as e:
        logger.warning("Mailgun request failed: to=%s error=%s: %s", to_email, type(e).__name__, e)
        return False
    if 200 <= r.status_code < 300:
        logger.info("Email sent: to=%s subject=%s status=%s", to_email, subject, r.status_code)
        return True
    logger.warning("Mailgun API failed: status=%s to=%s body=%s", r.status_code, to_email, r.text[:500])
    return False


def _post_link(post_id: str | None, fallback_path: str = "/my-claims") -> str:
    base = get_settings().frontend_url.rstrip("/")
    return f"{base}/post/{post_id}" if post_id else f"{base}{fallback_path}"


def _otp_block(otp: str) -> str:
    return (
        '<div style="background-color:#f4f4f4;padding:10px;margin:20px 0;text-align:center;'
        f'font-size:24px;letter-spacing:5px;font-weight:bold;">{otp}</div>'
    )


def render_verification_otp(name: str, otp: str, expires_minutes: int = 15) -> tuple[str, str, str]:
    subject = "Verify your FoodShare account"
    text = f"Hello {name}, your FoodShare verification code is {otp}. It expires in {expires_minutes} minutes."
    html = f"""
    <h1>Welcome to FoodShare!</h1>
    <p>Hello {escape(name)},</p>
    <p>Please verify your email address by entering the following verification code:</p>
    {_otp_block(otp)}
    <p>This code will expire in {expires_minutes} minutes.</p>
    <p>If you did not sign up for FoodShare, please ignore this email.</p>
    <p>The FoodShare Team</p>
    """
    return subject, html, text


def render_login_otp(name: str, otp: str, expires_minutes: int = 30) -> tuple[str, str, str]:
    subject = "Login to FoodShare"
    text = f"Hello {name}, your FoodShare login code is {otp}. It expires in {expires_minutes} minutes."
    html = f"""
    <h1>Login to FoodShare</h1>
    <p>Hello {escape(name)},</p>
    <p>Here is your verification code to log in to FoodShare:</p>
    {_otp_block(otp)}
    <p>This code will expire in {expires_minutes} minutes.</p>
    <p>If you did not request this code, please ignore this email.</p>
    <p>The FoodShare Team</p>
    """
    return subject, html, text


def render_donation_claimed(name: str, post_title: str, claimer_name: str, post_id: str) -> tuple[str, str, str]:
    link = _post_link(post_id)
    subject = "Your FoodShare donation has been claimed"
    text = f'Hello {name}, your donation "{post_title}" has been claimed by {claimer_name}. View it at {link}'
    html = f"""
    <h1>Your donation has been claimed!</h1>
    <p>Hello {escape(name)},</p>
    <p>Good news! Your donation "{escape(post_title)}" has been claimed by {escape(claimer_name)}.</p>
    <p><a href="{link}">View Donation</a></p>
    <p>Thank you for sharing and reducing food waste!</p>
    <p>The FoodShare Team</p>
    """
    return subject, html, text


def render_request_fulfilled(name: str, post_title: str, fulfiller_name: str, post_id: str) -> tuple[str, str, str]:
    link = _post_link(post_id)
    subject = "Your FoodShare request has been fulfilled"
    text = f'Hello {name}, your request "{post_title}" has been fulfilled by {fulfiller_name}. View it at {link}'
    html = f"""
    <h1>Your request has been fulfilled!</h1>
    <p>Hello {escape(name)},</p>
    <p>Great news! Your request "{escape(post_title)}" has been fulfilled by {escape(fulfiller_name)}.</p>
    <p><a href="{link}">View Request</a></p>
    <p>The FoodShare Team</p>
    """
    return subject, html, text


def render_status_update(
    name: str, post_title: str, status: str, updater_name: str, post_id: str | None = None
) -> tuple[str, str, str]:
    link = _post_link(post_id)
    subject = f"FoodShare: Your post has been marked as {status}"
    rate_line = f"<p>Please take a moment to rate your experience with {escape(updater_name)}!</p>" if status == "completed" else ""
    text = f'Hello {name}, "{post_title}" has been marked as {status} by {updater_name}. View it at {link}'
    html = f"""
    <h1>Post Status Update</h1>
    <p>Hello {escape(name)},</p>
    <p>Your post "{escape(post_title)}" has been marked as <strong>{status.capitalize()}</strong> by {escape(updater_name)}.</p>
    {rate_line}
    <p><a href="{link}">View Details</a></p>
    <p>The FoodShare Team</p>
    """
    return subject, html, text


def render_rating_received(
    name: str, rater_name: str, value: int, post_title: str, comment: str | None = None
) -> tuple[str, str, str]:
    subject = f"You received a {value}-star rating on FoodShare"
    comment_line = f'<p>Their comment: "{escape(comment)}"</p>' if comment else ""
    text = f"Hello {name}, {rater_name} has left you a {value}-star rating for {post_title}."
    html = f"""
    <h1>You've received a rating!</h1>
    <p>Hello {escape(name)},</p>
    <p>{escape(rater_name)} has left you a {value}-star rating for {escape(post_title)}.</p>
    {comment_line}
    <p>Thank you for using FoodShare!</p>
    """
    return subject, html, text


_RENDERERS = {
    NotificationKind.verification_otp: render_verification_otp,
    NotificationKind.login_otp: render_login_otp,
    NotificationKind.donation_claimed: render_donation_claimed,
    NotificationKind.request_fulfilled: render_request_fulfilled,
    NotificationKind.status_update: render_status_update,
    NotificationKind.rating_received: render_rating_received,
}


def render(kind: NotificationKind, template_args: dict[str, Any]) -> tuple[str, str, str]:
    """Build (subject, html, text) for a notification kind."""
    return _RENDERERS[NotificationKind(kind)](**template_args)


class MailgunNotifier:
    """Dispatcher used in production: render the template, send it through Mailgun."""

    def send(self, to_email: str, to_name: str, kind: NotificationKind, template_args: dict[str, Any]) -> bool:
        subject, html, text = render(kind, template_args)
        return send_email(to_email, to_name, subject, html, text_content=text)


def dispatch_quietly(notifier, to_email: str, to_name: str, kind: NotificationKind, template_args: dict[str, Any]) -> bool:
    """Fire-and-forget send: any failure is logged and swallowed."""
    try:
        sent = notifier.send(to_email, to_name, kind, template_args)
    except Exception:
        logger.exception("Notification %s to %s raised; ignoring", NotificationKind(kind).value, to_email)
        return False
    if not sent:
        logger.warning("Notification %s to %s was not delivered", NotificationKind(kind).value, to_email)
    return bool(sent)


_notifier = MailgunNotifier()


def get_notifier() -> MailgunNotifier:
    return _notifier
