# comparison/alerts.py
import math
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from coordinator.errors import ValidationFailure

from .models import AlertRequest, Offer
from .offers import cheapest

SUGGESTED_DISCOUNT = 0.9
NOTIFY_CHANNELS = ("email", "sms")

EMAIL_RE = re.compile(r"^[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}$", re.IGNORECASE)
PHONE_RE = re.compile(r"^[0-9]{10}$")


def suggest_target(offers: Iterable[Offer]) -> Optional[int]:
    """
    Default target price for a new price alert: 10% under the cheapest offer.

    Returns:
        int or None: floor(0.9 * cheapest price), or None when there is no
            offer, in which case the user has to type a target in
    """
    offer = cheapest(offers)
    if offer is None:
        return None
    return math.floor(SUGGESTED_DISCOUNT * offer.price)


@dataclass(frozen=True)
class AlertForm:
    """Values as typed into the alert form. Validation never rewrites them."""

    target_price: Optional[float] = None
    notify_via: str = "email"
    email: str = ""
    phone: str = ""

    @property
    def contact(self):
        return self.email.strip() if self.notify_via == "email" else self.phone.strip()


def default_form(offers: Iterable[Offer]) -> AlertForm:
    return AlertForm(target_price=suggest_target(offers))


def validate_alert(book_id: str, form: AlertForm) -> AlertRequest:
    """
    Check an alert form and turn it into the payload for create_alert.

    Every field is checked before raising so the user sees all problems at
    once. Only the contact field matching ``notify_via`` is validated.

    Args:
        book_id (str): Book the alert is for
        form (AlertForm): Values entered by the user

    Returns:
        AlertRequest: Validated payload

    Raises:
        ValidationFailure: With one message per invalid field
    """
    errors = {}

    price = form.target_price
    if price is None or (isinstance(price, float) and math.isnan(price)):
        errors["target_price"] = "Target price is required"
    elif price <= 0:
        errors["target_price"] = "Price must be greater than 0"

    if form.notify_via not in NOTIFY_CHANNELS:
        errors["notify_via"] = "Choose email or sms"
    elif form.notify_via == "email":
        email = form.email.strip()
        if not email:
            errors["email"] = "Email is required"
        elif not EMAIL_RE.match(email):
            errors["email"] = "Invalid email address"
    else:
        phone = form.phone.strip()
        if not phone:
            errors["phone"] = "Phone number is required"
        elif not PHONE_RE.match(phone):
            errors["phone"] = "Invalid phone number (10 digits required)"

    if not book_id:
        errors["book_id"] = "Book is required"

    if errors:
        raise ValidationFailure(errors)

    return AlertRequest(
        book_id=book_id,
        target_price=float(price),
        notify_via=form.notify_via,
        contact=form.contact,
    )
