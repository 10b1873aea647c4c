"""Shop checkout through the Shopify Cart API."""

import math
import time
from datetime import date, datetime, time as dtime, timezone
from typing import List, Optional, Sequence

from loguru import logger

from minimusiker.clients.shopify import ShopifyStorefrontClient
from minimusiker.core.catalog import BUNDLE_CODE, EARLY_BIRD_CODE, variant_gid
from minimusiker.core.config import settings
from minimusiker.core.errors import PortalError, ValidationError
from minimusiker.services.events import EventService
from minimusiker.services.views import CheckoutAttributes, CheckoutLine, CheckoutResult

SECONDS_PER_DAY = 24 * 3600


def days_until_event(event_date: Optional[date], now: Optional[datetime] = None) -> Optional[int]:
    """Whole days until the event day starts (UTC), rounded up; None without a date."""
    if event_date is None:
        return None
    start = datetime.combine(event_date, dtime.min, tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return math.ceil((start - now).total_seconds() / SECONDS_PER_DAY)


def validate_lines(lines: Sequence[CheckoutLine]) -> None:
    if not lines:
        raise ValidationError("Line items are required")
    for line in lines:
        if not line.variant_id:
            raise ValidationError("Each line item must have a variantId")
        if line.quantity < 1:
            raise ValidationError("Each line item must have a quantity of at least 1")


def bundle_applies(lines: Sequence[CheckoutLine]) -> bool:
    types = {line.product_type for line in lines}
    return "tshirt" in types and "hoodie" in types


class CheckoutService:
    def __init__(self, shopify: ShopifyStorefrontClient, events: EventService):
        self.shopify = shopify
        self.events = events

    async def _early_bird_applies(self, event_id: str, now: Optional[datetime]) -> bool:
        try:
            event = await self.events.get_by_event_id(event_id)
        except PortalError as e:
            logger.error(f"Early-bird check failed for event {event_id}: {e.message}")
            return False
        if not event or not event.event_date:
            return False
        days = days_until_event(event.event_date, now)
        return days is not None and days > 0

    async def discount_codes(
        self,
        lines: Sequence[CheckoutLine],
        attributes: Optional[CheckoutAttributes],
        now: Optional[datetime] = None,
    ) -> List[str]:
        """Early-bird before the event day, bundle for a T-shirt plus hoodie."""
        codes = []
        if attributes and attributes.event_id:
            if await self._early_bird_applies(attributes.event_id, now):
                codes.append(EARLY_BIRD_CODE)
        if bundle_applies(lines):
            codes.append(BUNDLE_CODE)
        return codes

    async def create_checkout(
        self,
        lines: Sequence[CheckoutLine],
        attributes: Optional[CheckoutAttributes] = None,
        now: Optional[datetime] = None,
    ) -> CheckoutResult:
        validate_lines(lines)
        codes = await self.discount_codes(lines, attributes, now)
        if codes:
            logger.info(f"Applying discount codes: {', '.join(codes)}")

        if not settings.ENABLE_SHOPIFY_INTEGRATION:
            cart_id = f"mock_cart_{int(time.time() * 1000)}"
            logger.info(f"Shopify integration disabled, returning mock cart {cart_id}")
            return CheckoutResult(
                cart_id=cart_id,
                checkout_url=f"{settings.APP_URL}/checkout/mock/{cart_id}",
                total_quantity=sum(line.quantity for line in lines),
                total_amount=0,
                currency="EUR",
                discount_codes=codes,
                is_mock=True,
            )

        cart_attributes = None
        buyer_email = None
        if attributes:
            cart_attributes = {
                "parentId": attributes.parent_id,
                "parentEmail": attributes.parent_email,
                "eventId": attributes.event_id,
                "schoolName": attributes.school_name,
            }
            buyer_email = attributes.parent_email

        cart = await self.shopify.create_cart(
            [
                {"merchandiseId": variant_gid(line.variant_id), "quantity": line.quantity}
                for line in lines
            ],
            attributes=cart_attributes,
            buyer_email=buyer_email,
            discount_codes=codes,
        )
        logger.info(f"Shopify cart created: {cart['cartId']} ({cart['totalQuantity']} items)")
        return CheckoutResult(
            cart_id=cart["cartId"],
            checkout_url=cart["checkoutUrl"],
            total_quantity=cart["totalQuantity"],
            total_amount=cart["totalAmount"],
            currency=cart["currency"],
            discount_codes=codes,
        )
