"""
Submission Service
Validates the apply form and records an application against an open opportunity.
"""
import logging
import uuid
from datetime import datetime
from typing import Optional

from email_validator import EmailNotValidError, validate_email

from divein.config import settings
from divein.errors import NotFoundError, ValidationError
from divein.models.applications import ApplicantInput, Application
from divein.models.opportunities import Opportunity, validate_http_url
from divein.services.application_store import ApplicationStore

logger = logging.getLogger(__name__)


def validate_applicant(applicant: ApplicantInput) -> ApplicantInput:
    """
    Check the form fields in order and raise on the first violation.
    Returns a cleaned copy (whitespace stripped, empty social link dropped).
    """
    first_name = (applicant.first_name or "").strip()
    if not first_name:
        raise ValidationError("first_name", "Prenumele este obligatoriu")

    last_name = (applicant.last_name or "").strip()
    if not last_name:
        raise ValidationError("last_name", "Numele este obligatoriu")

    email = (applicant.email or "").strip()
    if not email:
        raise ValidationError("email", "Adresa de email este obligatorie")
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        raise ValidationError("email", "Adresa de email nu este validă")

    social_link = (applicant.social_link or "").strip() or None
    if social_link is not None:
        try:
            social_link = validate_http_url(social_link)
        except ValueError:
            raise ValidationError("social_link", "Linkul social trebuie să fie un URL valid")

    message = (applicant.message or "").strip() or None

    return ApplicantInput(
        first_name=first_name,
        last_name=last_name,
        email=email,
        social_link=social_link,
        message=message,
    )


async def submit_application(
    opportunity: Opportunity,
    applicant: ApplicantInput,
    store: ApplicationStore,
    now: Optional[datetime] = None,
) -> str:
    """
    Validate the applicant and store a pending application for the opportunity.

    The opportunity must be active, and unexpired when expiry is enforced. Nothing is written when
    validation fails. Store failures propagate unchanged. Returns the new application id.
    """
    if opportunity.status != "active" or (settings.enforce_expiry and opportunity.is_expired(now)):
        raise NotFoundError("Oportunitatea nu a fost găsită")

    cleaned = validate_applicant(applicant)

    application = Application(
        opportunity_id=opportunity.id,
        applicant_id=str(uuid.uuid4()),
        first_name=cleaned.first_name,
        last_name=cleaned.last_name,
        email=cleaned.email,
        social_link=cleaned.social_link,
        message=cleaned.message,
        status="pending",
    )
    stored = await store.insert(application)
    logger.info("Application %s stored for opportunity %s", stored.id, opportunity.id)
    return stored.id
