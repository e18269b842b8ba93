"""
Send a test verification email via Mailgun to check the email service is configured correctly.
Usage: python scripts/send_test_email.py <to_email>
"""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from foodshare.config import get_settings
from foodshare.services.notifications import MailgunNotifier, NotificationKind
from foodshare.services.otp_store import generate_otp


def main():
    to_email = (sys.argv[1] if len(sys.argv) > 1 else "").strip()
    if not to_email:
        print("Usage: python scripts/send_test_email.py <to_email>")
        sys.exit(1)

    settings = get_settings()
    if not settings.mailgun_api_key or not settings.mailgun_domain:
        print("Mailgun is not configured. Set MAILGUN_API_KEY and MAILGUN_DOMAIN in .env")
        print(f"  MAILGUN_API_KEY: {'(set)' if settings.mailgun_api_key else '(missing)'}")
        print(f"  MAILGUN_DOMAIN: {repr(settings.mailgun_domain) if settings.mailgun_domain else '(missing)'}")
        sys.exit(1)

    print(f"Sending test verification code to: {to_email} (domain {settings.mailgun_domain})")
    ok = MailgunNotifier().send(
        to_email,
        "FoodShare tester",
        NotificationKind.verification_otp,
        {"name": "FoodShare tester", "otp": generate_otp(), "expires_minutes": settings.registration_otp_expire_minutes},
    )
    if ok:
        print("Success: check the inbox (and spam) for", to_email)
    else:
        print("Failed: Mailgun returned an error or was unreachable; see the log above.")
        print("  - For EU accounts set MAILGUN_BASE_URL=https://api.eu.mailgun.net in .env")
        sys.exit(1)


if __name__ == "__main__":
    main()
