"""Shopify Storefront GraphQL client.

Only the Cart API is used: the shop creates a cart with the parent's line
items and custom attributes and hands the buyer the cart's checkout URL.
"""

from typing import Any, Dict, List, Optional

import aiohttp
from loguru import logger

from minimusiker.core.config import settings
from minimusiker.core.errors import ShopifyError

CART_CREATE_MUTATION = """
mutation CartCreate($input: CartInput!) {
  cartCreate(input: $input) {
    cart {
      id
      checkoutUrl
      totalQuantity
      cost {
        totalAmount {
          amount
          currencyCode
        }
      }
    }
    userErrors {
      field
      message
    }
  }
}
"""


class ShopifyStorefrontClient:
    """Async client for the Storefront API of one shop."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self.store_domain = settings.SHOPIFY_STORE_DOMAIN
        self.access_token = settings.SHOPIFY_STOREFRONT_ACCESS_TOKEN
        self.api_version = settings.SHOPIFY_API_VERSION
        self._session = session
        self._owns_session = session is None

    @property
    def url(self) -> str:
        return f"https://{self.store_domain}/api/{self.api_version}/graphql.json"

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure we have an aiohttp session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={
                    "Content-Type": "application/json",
                    "X-Shopify-Storefront-Access-Token": self.access_token,
                }
            )
        return self._session

    async def query(
        self, document: str, variables: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Execute a GraphQL document and return its ``data`` member.

        Raises:
            ShopifyError: On HTTP errors or when the response carries ``errors``.
        """
        session = await self._ensure_session()
        try:
            async with session.post(
                self.url, json={"query": document, "variables": variables or {}}
            ) as response:
                if response.status != 200:
                    logger.error(f"Shopify API error: status={response.status}")
                    raise ShopifyError(f"Shopify API error: {response.status}")
                payload = await response.json()
        except aiohttp.ClientError as e:
            logger.error(f"Network error calling Shopify: {e}")
            raise ShopifyError(f"Shopify request failed: {e}") from e

        errors = payload.get("errors")
        if errors:
            logger.error(f"Shopify GraphQL errors: {errors}")
            raise ShopifyError(f"GraphQL error: {errors[0].get('message')}")
        return payload.get("data") or {}

    async def create_cart(
        self,
        lines: List[Dict[str, Any]],
        attributes: Optional[Dict[str, Any]] = None,
        buyer_email: Optional[str] = None,
        discount_codes: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Create a cart and return its id, checkout URL and totals.

        Args:
            lines: ``{"merchandiseId": gid, "quantity": n}`` entries.
            attributes: Custom cart attributes; None values are dropped.
            buyer_email: Prefills the checkout and ties the order to the parent.
            discount_codes: Codes applied to the cart.
        """
        cart_input: Dict[str, Any] = {"lines": lines}
        if attributes:
            cart_input["attributes"] = [
                {"key": key, "value": str(value)}
                for key, value in attributes.items()
                if value is not None
            ]
        if buyer_email:
            cart_input["buyerIdentity"] = {"email": buyer_email}
        if discount_codes:
            cart_input["discountCodes"] = discount_codes

        data = await self.query(CART_CREATE_MUTATION, {"input": cart_input})
        result = data.get("cartCreate") or {}

        user_errors = result.get("userErrors") or []
        if user_errors:
            logger.error(f"Shopify cart creation errors: {user_errors}")
            raise ShopifyError(f"Cart error: {user_errors[0].get('message')}")

        cart = result.get("cart")
        if not cart:
            raise ShopifyError("Cart creation failed: No cart returned")

        total = cart["cost"]["totalAmount"]
        return {
            "cartId": cart["id"],
            "checkoutUrl": cart["checkoutUrl"],
            "totalQuantity": cart["totalQuantity"],
            "totalAmount": float(total["amount"]),
            "currency": total["currencyCode"],
        }

    async def close(self):
        """Close the aiohttp session if we own it."""
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None
