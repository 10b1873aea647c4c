import pytest

from minimusiker.clients.shopify import ShopifyStorefrontClient
from minimusiker.core.errors import ShopifyError


@pytest.fixture
def shopify(http_session):
    client = ShopifyStorefrontClient(session=http_session)
    client.store_domain = "minimusiker.myshopify.com"
    client.api_version = "2025-01"
    return client


def _cart_payload(**overrides):
    result = {
        "cart": {
            "id": "gid://shopify/Cart/1",
            "checkoutUrl": "https://shop.example/checkout/1",
            "totalQuantity": 3,
            "cost": {"totalAmount": {"amount": "54.50", "currencyCode": "EUR"}},
        },
        "userErrors": [],
    }
    result.update(overrides)
    return {"data": {"cartCreate": result}}


@pytest.mark.asyncio
async def test_create_cart(shopify, http_session, response):
    http_session.post.side_effect = [response(payload=_cart_payload())]

    cart = await shopify.create_cart(
        [{"merchandiseId": "gid://shopify/ProductVariant/1", "quantity": 3}],
        attributes={"parentId": "p1", "eventId": None},
        buyer_email="eltern@example.org",
        discount_codes=["EARLYBIRD10"],
    )

    assert cart == {
        "cartId": "gid://shopify/Cart/1",
        "checkoutUrl": "https://shop.example/checkout/1",
        "totalQuantity": 3,
        "totalAmount": 54.5,
        "currency": "EUR",
    }
    url = http_session.post.call_args.args[0]
    assert url == "https://minimusiker.myshopify.com/api/2025-01/graphql.json"
    cart_input = http_session.post.call_args.kwargs["json"]["variables"]["input"]
    assert cart_input["attributes"] == [{"key": "parentId", "value": "p1"}]
    assert cart_input["buyerIdentity"] == {"email": "eltern@example.org"}
    assert cart_input["discountCodes"] == ["EARLYBIRD10"]


@pytest.mark.asyncio
async def test_user_errors_raise(shopify, http_session, response):
    http_session.post.side_effect = [
        response(
            payload=_cart_payload(
                cart=None, userErrors=[{"field": ["lines"], "message": "Variant not found"}]
            )
        )
    ]
    with pytest.raises(ShopifyError, match="Cart error: Variant not found"):
        await shopify.create_cart([{"merchandiseId": "x", "quantity": 1}])


@pytest.mark.asyncio
async def test_graphql_errors_raise(shopify, http_session, response):
    http_session.post.side_effect = [response(payload={"errors": [{"message": "Throttled"}]})]
    with pytest.raises(ShopifyError, match="GraphQL error: Throttled"):
        await shopify.create_cart([{"merchandiseId": "x", "quantity": 1}])
