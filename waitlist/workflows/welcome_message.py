"""Content of the welcome email.

Both variants carry the same paragraphs; the HTML one only adds emphasis.
"""

from __future__ import annotations

from dataclasses import dataclass

PRODUCT_NAME = "Wealth Wards"

SUBJECT = f"Thanks for subscribing to {PRODUCT_NAME}"

TEXT_BODY = "\n".join(
    [
        "Hi,",
        "",
        f"Thanks for joining the {PRODUCT_NAME} early access list.",
        "We are working on something special to help you protect and grow "
        "your wealth.",
        "You will be hearing more from us soon.",
        "",
        "In the meantime, you can reply to this email if you have any "
        "questions or ideas.",
        "",
        f"- The {PRODUCT_NAME} Team",
    ]
)

HTML_BODY = f"""\
<p>Hi,</p>
<p>Thanks for joining the <strong>{PRODUCT_NAME}</strong> early access list.</p>
<p>We are working on something special to help you protect and grow your wealth.<br/>
You will be hearing more from us soon.</p>
<p>In the meantime, you can reply to this email if you have any questions or ideas.</p>
<p>- <strong>The {PRODUCT_NAME} Team</strong></p>
"""


@dataclass(frozen=True)
class WelcomeMessage:
    subject: str
    text: str
    html: str


def build_welcome_message() -> WelcomeMessage:
    return WelcomeMessage(subject=SUBJECT, text=TEXT_BODY, html=HTML_BODY)


__all__ = ["SUBJECT", "WelcomeMessage", "build_welcome_message"]
