"""
SES-based notifications for registrations and contact messages.
"""

import asyncio
from typing import Iterable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from registration_api.core.config import Settings
from registration_api.core.logging import get_logger
from registration_api.core.metrics import email_failures
from registration_api.models.registration import Address, Registrant
from registration_api.services.interfaces.notifier import Notifier, NullNotifier

logger = get_logger(__name__)


class SesNotifier(Notifier):
    def __init__(self, sender: str, ses_client, timeout: float = 10.0):
        self.sender = sender
        self._ses = ses_client
        self.timeout = timeout

    async def send(self, subject: str, body: str, recipients: Iterable[str]) -> bool:
        targets = [addr for addr in recipients if addr]
        if not targets:
            return False
        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(
                    self._ses.send_email,
                    Source=self.sender,
                    Destination={"ToAddresses": targets},
                    Message={
                        "Subject": {"Data": subject, "Charset": "UTF-8"},
                        "Body": {"Text": {"Data": body, "Charset": "UTF-8"}},
                    },
                ),
                timeout=self.timeout,
            )
        except (ClientError, BotoCoreError, asyncio.TimeoutError) as e:
            email_failures.inc()
            logger.error("email_send_failed", subject=subject, recipients=len(targets), error=str(e))
            return False

        logger.info("email_sent", subject=subject, message_id=response.get("MessageId"))
        return True


def build_notifier(settings: Settings) -> Notifier:
    if not settings.SES_FROM_EMAIL or not settings.AWS_ACCESS_KEY_ID:
        logger.warning("email_disabled", reason="SES sender or credentials not configured")
        return NullNotifier()
    client = boto3.client(
        "ses",
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        region_name=settings.AWS_REGION,
    )
    return SesNotifier(settings.SES_FROM_EMAIL, client)


def _address_line(address: Optional[Address]) -> str:
    if address is None:
        return ""
    unit = f" {address.unit}" if address.unit else ""
    return (
        f"Training location: {address.street}{unit}, {address.city}, "
        f"{address.state} {address.zip}, {address.country}\n"
    )


async def send_registration_confirmation(
    notifier: Notifier,
    registrant: Registrant,
    event_summary: str,
    admin_email: Optional[str],
) -> None:
    """Notify the guardian and the admin. Never raises on delivery failure."""
    if registrant.players:
        player = ", ".join(f"{p.first_name} {p.last_name}" for p in registrant.players)
    else:
        player = f"{registrant.player_first_name} {registrant.player_last_name}"
    amount = f"${registrant.amount:.2f}" if registrant.amount is not None else "n/a"

    guardian_body = (
        f"Hi {registrant.guardian_first_name},\n\n"
        f"{player} {'are' if registrant.player_count > 1 else 'is'} registered for {event_summary}.\n"
        f"Amount paid: {amount}\n\n"
        "Your payment receipt will be sent separately."
    )
    admin_body = (
        f"Event: {event_summary}\n"
        f"Player{'s' if registrant.player_count > 1 else ''}: {player}\n"
        f"{_address_line(registrant.address)}"
        f"Guardian: {registrant.guardian_first_name} {registrant.guardian_last_name} "
        f"<{registrant.guardian_email}> {registrant.guardian_phone}\n"
        f"Emergency contact: {registrant.emergency_contact_name or '-'} "
        f"{registrant.emergency_contact_phone or ''}\n"
        f"Medical notes: {registrant.medical_notes or '-'}\n"
        f"Amount paid: {amount}\n"
        f"Reference: {registrant.payment_reference or registrant.id}"
    )

    sends = [
        notifier.send(f"Registration Confirmed: {event_summary}", guardian_body, [registrant.guardian_email]),
    ]
    if admin_email:
        sends.append(notifier.send(f"New Registration: {event_summary}", admin_body, [admin_email]))
    else:
        logger.warning("admin_email_not_configured")

    results = await asyncio.gather(*sends)
    if not all(results):
        logger.warning("registration_email_incomplete", registrant_id=registrant.id)
