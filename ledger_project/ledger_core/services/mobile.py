import logging
import re

from django.db import transaction
from django.utils import timezone

from ..exceptions import MobileVerificationError
from ..models import Customer, MobileLinkRequest
from .audit_helper import log_action

logger = logging.getLogger(__name__)

MOBILE_PATTERN = re.compile(r"^[6-9]\d{9}$")


def verification_status(customer) -> dict:
    pending = customer.mobile_requests.filter(status="pending").order_by("-created_at").first()
    return {
        "isVerified": customer.mobile_verified,
        "currentMobile": customer.mobile if customer.has_real_mobile else None,
        "pendingMobile": pending.mobile if pending else None,
        "message": None if customer.mobile_verified else (
            "Your mobile number is not linked with your account. "
            "Please add your mobile number to continue."
        ),
    }


def request_mobile_link(customer, mobile) -> MobileLinkRequest:
    mobile = (mobile or "").strip()
    if not MOBILE_PATTERN.match(mobile):
        raise MobileVerificationError(
            "Invalid mobile number. Must be 10 digits starting with 6, 7, 8, or 9."
        )

    if customer.mobile_verified:
        raise MobileVerificationError("Your mobile number is already verified.", isVerified=True)

    taken = (
        Customer.objects.filter(mobile=mobile, mobile_verified=True)
        .exclude(pk=customer.pk)
        .exists()
    )
    if taken:
        raise MobileVerificationError(
            "This mobile number is already registered with another shop.",
            code="MOBILE_ALREADY_EXISTS",
        )

    existing = customer.mobile_requests.filter(mobile=mobile, status="pending").first()
    if existing is not None:
        raise MobileVerificationError(
            "You already have a pending verification request for this mobile number.",
            requestId=existing.pk,
        )

    link = MobileLinkRequest.objects.create(
        customer=customer, shop_name=customer.name, mobile=mobile
    )
    logger.info("Mobile link request %s opened for customer %s", link.pk, customer.pk)
    return link


def pending_requests():
    return [
        {
            "requestId": r.pk,
            "customerId": r.customer_id,
            "shopName": r.shop_name,
            "mobile": r.mobile,
            "status": r.status,
            "requestDate": r.created_at,
        }
        for r in MobileLinkRequest.objects.filter(status="pending").order_by("created_at")
    ]


def _pending_request(request_id, for_update=False):
    if not request_id:
        raise MobileVerificationError("Request ID is required")
    qs = MobileLinkRequest.objects.all()
    if for_update:
        qs = qs.select_for_update()
    link = qs.filter(pk=request_id).first()
    if link is None:
        raise MobileVerificationError("Verification request not found", status=404)
    if link.status != "pending":
        raise MobileVerificationError(
            f"This request has already been {link.status}", currentStatus=link.status
        )
    return link


def approve_request(request_id, staff_user=None) -> MobileLinkRequest:
    """Link the number and mark it verified in one transaction."""
    with transaction.atomic():
        link = _pending_request(request_id, for_update=True)
        taken = (
            Customer.objects.filter(mobile=link.mobile, mobile_verified=True)
            .exclude(pk=link.customer_id)
            .exists()
        )
        if taken:
            raise MobileVerificationError(
                "This mobile number is already registered with another shop.",
                code="MOBILE_ALREADY_EXISTS",
            )

        customer = Customer.objects.select_for_update().get(pk=link.customer_id)
        previous = customer.mobile
        customer.mobile = link.mobile
        customer.mobile_verified = True
        customer.save(update_fields=["mobile", "mobile_verified", "updated_at"])

        link.status = "approved"
        link.approved_by = staff_user if getattr(staff_user, "is_authenticated", False) else None
        link.approved_at = timezone.now()
        link.save(update_fields=["status", "approved_by", "approved_at"])

        log_action(
            action="verify_mobile",
            instance=customer,
            user=staff_user,
            changes={"mobile": [previous, link.mobile]},
        )

    logger.info("Mobile %s verified for customer %s", link.mobile, link.customer_id)
    return link


def reject_request(request_id, staff_user=None) -> MobileLinkRequest:
    with transaction.atomic():
        link = _pending_request(request_id, for_update=True)
        link.status = "rejected"
        link.save(update_fields=["status"])
        log_action(action="reject_mobile", instance=link, user=staff_user)
    logger.info("Mobile link request %s rejected", link.pk)
    return link
