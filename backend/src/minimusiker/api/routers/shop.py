from fastapi import APIRouter, Depends

from minimusiker.api.deps import get_checkout_service, require_parent
from minimusiker.api.schemas import CheckoutRequest
from minimusiker.core.sessions import ParentSession
from minimusiker.services.checkout import CheckoutService
from minimusiker.services.views import CheckoutAttributes

router = APIRouter()


@router.post("/checkout")
async def create_checkout(
    body: CheckoutRequest,
    session: ParentSession = Depends(require_parent),
    checkout: CheckoutService = Depends(get_checkout_service),
):
    """Create a Shopify cart for the parent and return its checkout URL.

    Parent identity comes from the session; the event defaults to the one
    the parent registered for.
    """
    attributes = CheckoutAttributes(
        parent_id=session.parent_id,
        parent_email=session.email,
        event_id=body.event_id or session.event_id,
        school_name=body.school_name or session.school_name,
    )
    result = await checkout.create_checkout(body.line_items, attributes)
    return {"success": True, **result.dump()}
