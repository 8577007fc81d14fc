"""
Contact form endpoint.
"""

from fastapi import APIRouter, Depends, status

from registration_api.api.deps import get_container
from registration_api.core.logging import get_logger
from registration_api.schemas.reservation import ContactMessage
from registration_api.services.container import ServiceContainer

logger = get_logger(__name__)
router = APIRouter(prefix="/contact", tags=["Contact"])


@router.post("", status_code=status.HTTP_202_ACCEPTED)
async def submit_contact(
    message: ContactMessage,
    container: ServiceContainer = Depends(get_container),
):
    """Forward a contact message to the admin inbox. Delivery is best effort."""
    admin_email = container.settings.ADMIN_EMAIL
    body = (
        f"Name: {message.name}\n"
        f"Email: {message.email}\n"
        f"Phone: {message.phone or 'Not provided'}\n\n"
        f"{message.message}"
    )
    delivered = False
    if admin_email:
        delivered = await container.notifier.send(
            f"New Contact Form Submission from {message.name}", body, [admin_email]
        )
    else:
        logger.warning("admin_email_not_configured")

    logger.info("contact_message_received", delivered=delivered)
    return {"success": True, "delivered": delivered}
