"""One-time welcome email to everyone on the waitlist.

The job loads the registry once, resolves the distinct set of valid
addresses and hands a single message to the mail transport with every
subscriber as a blind recipient.  Setting ``TO_OVERRIDE`` routes that one
message to a test address instead.

Environment variables used (a ``.env`` file in the working directory is
honoured, without overriding variables already set):

* ``SMTP_HOST``, ``SMTP_PORT``, ``SMTP_USER``, ``SMTP_PASS``, ``FROM_EMAIL``
  – required.
* ``TO_OVERRIDE`` – optional single test recipient.
* ``SMTP_USE_SSL`` – force (``true``) or disable (``false``) implicit TLS;
  by default it is used on port 465 only.
* ``SMTP_DEBUG`` – truthy values enable ``smtplib`` protocol tracing.

Registry location and backend come from :class:`waitlist.config.Settings`.
Run it with ``python -m waitlist.workflows.welcome_dispatch`` or the
``waitlist-send-welcome`` console script.
"""

from __future__ import annotations

import argparse
import logging
import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

from dotenv import load_dotenv

from waitlist.config import Settings, build_store, configure_logging
from waitlist.errors import ConfigurationError, DispatchFailed, StoreUnavailable
from waitlist.mailer import EmailSender
from waitlist.mailer.smtp_sender import SMTPSender
from waitlist.registry import RegistryStore
from waitlist.workflows.welcome_message import WelcomeMessage, build_welcome_message

LOGGER = logging.getLogger(__name__)

REQUIRED_VARS = ("SMTP_HOST", "SMTP_PORT", "SMTP_USER", "SMTP_PASS", "FROM_EMAIL")
_TRUTHY = {"1", "true", "yes"}


def _flag(value: Optional[str]) -> Optional[bool]:
    if value is None or not value.strip():
        return None
    return value.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class DispatchConfig:
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_pass: str
    from_address: str
    override_address: Optional[str] = None
    use_ssl: Optional[bool] = None
    debug: bool = False

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> "DispatchConfig":
        """Read the SMTP settings, failing on any missing required variable.

        Raises:
            ConfigurationError: Listing every missing variable, or when
                ``SMTP_PORT`` is not an integer.
        """
        env = os.environ if environ is None else environ
        values = {name: (env.get(name) or "").strip() for name in REQUIRED_VARS}
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise ConfigurationError(missing=missing)
        try:
            port = int(values["SMTP_PORT"])
        except ValueError as exc:
            raise ConfigurationError("SMTP_PORT must be an integer") from exc
        config = cls(
            smtp_host=values["SMTP_HOST"],
            smtp_port=port,
            smtp_user=values["SMTP_USER"],
            smtp_pass=values["SMTP_PASS"],
            from_address=values["FROM_EMAIL"],
            override_address=(env.get("TO_OVERRIDE") or "").strip() or None,
            use_ssl=_flag(env.get("SMTP_USE_SSL")),
            debug=bool(_flag(env.get("SMTP_DEBUG"))),
        )
        config.validate()
        return config

    def validate(self) -> None:
        fields = (
            ("SMTP_HOST", self.smtp_host),
            ("SMTP_PORT", self.smtp_port),
            ("SMTP_USER", self.smtp_user),
            ("SMTP_PASS", self.smtp_pass),
            ("FROM_EMAIL", self.from_address),
        )
        missing = [name for name, value in fields if not value]
        if missing:
            raise ConfigurationError(missing=missing)

    def build_sender(self) -> EmailSender:
        return SMTPSender(
            host=self.smtp_host,
            port=self.smtp_port,
            username=self.smtp_user,
            password=self.smtp_pass,
            use_ssl=self.use_ssl,
            debug=self.debug,
        )


@dataclass(frozen=True)
class DispatchReport:
    """Outcome of a dispatch run, kept for the operator's audit log."""

    message_id: Optional[str] = None
    recipients: List[str] = field(default_factory=list)
    override_address: Optional[str] = None

    @property
    def sent(self) -> bool:
        return self.message_id is not None

    @property
    def delivered_to(self) -> List[str]:
        """Addresses the message was actually handed to."""
        if not self.recipients:
            return []
        if self.override_address:
            return [self.override_address]
        return list(self.recipients)


def dispatch(
    config: DispatchConfig,
    store: RegistryStore,
    sender: Optional[EmailSender] = None,
    message: Optional[WelcomeMessage] = None,
    dry_run: bool = False,
) -> DispatchReport:
    """Send the welcome message once to every distinct subscriber.

    Configuration is validated before the registry is touched.  An empty
    registry, or one without a single valid address, is a successful run
    with nothing sent.

    Raises:
        ConfigurationError: A required setting is missing.
        StoreUnavailable: The registry could not be read.
        DispatchFailed: The transport did not accept the message.
    """
    config.validate()

    registry = store.load()
    if not len(registry):
        LOGGER.info("No subscribers found.")
        return DispatchReport(override_address=config.override_address)

    recipients = registry.distinct_emails()
    skipped = len(registry) - len(recipients)
    if skipped:
        LOGGER.debug("Skipped %d duplicate or invalid record(s)", skipped)
    if not recipients:
        LOGGER.info("No valid subscriber addresses found.")
        return DispatchReport(override_address=config.override_address)

    LOGGER.info("Preparing to email %d subscriber(s)...", len(recipients))
    report = DispatchReport(
        recipients=recipients, override_address=config.override_address
    )
    if dry_run:
        LOGGER.info("Dry run, not sending. Recipients: %s",
                    ", ".join(report.delivered_to))
        return report

    if sender is None:
        sender = config.build_sender()
    if message is None:
        message = build_welcome_message()

    if config.override_address:
        to: List[str] = [config.override_address]
        bcc: List[str] = []
    else:
        to, bcc = [], recipients

    message_id = sender.send_email(
        sender=config.from_address,
        subject=message.subject,
        html=message.html,
        text=message.text,
        to=to,
        bcc=bcc,
    )
    return DispatchReport(
        message_id=message_id,
        recipients=recipients,
        override_address=config.override_address,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Send the one-time welcome email to every subscriber."
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Resolve and log the recipients without sending anything.",
    )
    args = parser.parse_args(argv)

    load_dotenv(override=False)
    try:
        settings = Settings.from_env()
    except ConfigurationError as exc:
        configure_logging()
        LOGGER.error("%s", exc.message)
        return 1
    configure_logging(settings.log_level)

    try:
        config = DispatchConfig.from_env()
    except ConfigurationError as exc:
        if exc.missing:
            LOGGER.error("%s (and optionally TO_OVERRIDE).", exc.message)
        else:
            LOGGER.error("%s", exc.message)
        return 1

    try:
        report = dispatch(config, build_store(settings), dry_run=args.dry_run)
    except (DispatchFailed, StoreUnavailable):
        LOGGER.exception("Failed to send welcome emails")
        return 1

    if report.sent:
        LOGGER.info("Email sent to %d recipient(s). Message ID: %s",
                    len(report.recipients), report.message_id)
        LOGGER.info("Recipients: %s", ", ".join(report.delivered_to))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
