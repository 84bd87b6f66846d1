import uuid
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from spicecart.api.routers import cart as cart_router
from spicecart.core.config import settings
from spicecart.domain.enums import RuleScope
from spicecart.models.catalog import B2BSettings, Product, ProductVariant
from spicecart.models.shipping import FreeShippingRule, ShippingZone
from spicecart.services import cart_store


def _seed_product(db: Session, *, price="25", is_b2b=False, **extra) -> str:
    product = Product(
        name=f"Cumin-{uuid.uuid4()}",
        price=None if price is None else Decimal(price),
        stock=50,
        is_b2b=is_b2b,
        **extra,
    )
    db.add(product)
    db.flush()
    product_id = str(product.id)
    db.commit()
    return product_id


def _seed_variant(db: Session, product_id: str, *, price: str) -> str:
    variant = ProductVariant(product_id=uuid.UUID(product_id), sku=f"V-{uuid.uuid4()}", size="1kg", price=Decimal(price), stock=5)
    db.add(variant)
    db.flush()
    variant_id = str(variant.id)
    db.commit()
    return variant_id


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.asyncio
async def test_guest_cart_lives_in_channel_cookie(client: AsyncClient, db_session: Session):
    product_id = _seed_product(db_session)

    add = await client.post("/api/v1/cart/b2c/items", json={"product_id": product_id, "quantity": 2})
    assert add.status_code == 201, add.text
    assert "cart_token_b2c=" in add.headers.get("set-cookie", "")
    assert add.headers.get("cache-control") == "no-store"
    body = add.json()
    assert body["channel"] == "b2c"
    assert body["items"][0]["quantity"] == 2
    assert body["subtotal"] == 50.0

    again = await client.post("/api/v1/cart/b2c/items", json={"product_id": product_id})
    assert again.status_code == 201
    # The existing token is reused.
    assert "set-cookie" not in again.headers

    cart = await client.get("/api/v1/cart/b2c")
    assert cart.status_code == 200
    assert cart.json()["id"] == body["id"]
    assert cart.json()["items"][0]["quantity"] == 3


@pytest.mark.asyncio
async def test_empty_cart_is_not_an_error(client: AsyncClient):
    resp = await client.get("/api/v1/cart/b2b")
    assert resp.status_code == 200
    body = resp.json()
    assert body["id"] is None
    assert body["items"] == []
    assert body["subtotal"] == 0.0
    assert "set-cookie" not in resp.headers


@pytest.mark.asyncio
async def test_unknown_channel_is_rejected(client: AsyncClient):
    resp = await client.get("/api/v1/cart/wholesale")
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_channels_keep_separate_carts(client: AsyncClient, db_session: Session, user_token: str):
    retail_id = _seed_product(db_session, price="10")
    wholesale_id = _seed_product(db_session, price="400", is_b2b=True)

    b2c = await client.post("/api/v1/cart/b2c/items", json={"product_id": retail_id}, headers=_auth(user_token))
    b2b = await client.post("/api/v1/cart/b2b/items", json={"product_id": wholesale_id}, headers=_auth(user_token))
    assert b2c.status_code == 201, b2c.text
    assert b2b.status_code == 201, b2b.text
    assert b2c.json()["id"] != b2b.json()["id"]
    # Signed-in callers never get a guest cookie.
    assert "set-cookie" not in b2c.headers

    b2c_view = (await client.get("/api/v1/cart/b2c", headers=_auth(user_token))).json()
    b2b_view = (await client.get("/api/v1/cart/b2b", headers=_auth(user_token))).json()
    assert [item["product_id"] for item in b2c_view["items"]] == [retail_id]
    assert [item["product_id"] for item in b2b_view["items"]] == [wholesale_id]


@pytest.mark.asyncio
async def test_cross_channel_adds_are_refused(client: AsyncClient, db_session: Session):
    retail_id = _seed_product(db_session)
    wholesale_id = _seed_product(db_session, is_b2b=True)

    hidden = await client.post("/api/v1/cart/b2c/items", json={"product_id": wholesale_id})
    assert hidden.status_code == 404
    assert hidden.json() == {"status": "error", "code": "not_found", "detail": "Product not found"}

    mismatch = await client.post("/api/v1/cart/b2b/items", json={"product_id": retail_id})
    assert mismatch.status_code == 409
    assert mismatch.json()["code"] == "channel_mismatch"


@pytest.mark.asyncio
async def test_price_hidden_product_returns_conflict(client: AsyncClient, db_session: Session):
    product_id = _seed_product(db_session, is_b2b=True, b2b_price_hidden=True)
    resp = await client.post("/api/v1/cart/b2b/items", json={"product_id": product_id, "quantity": 3})
    assert resp.status_code == 409
    assert resp.json()["code"] == "price_hidden"

    cart = await client.get("/api/v1/cart/b2b")
    assert cart.json()["items"] == []


@pytest.mark.asyncio
async def test_invalid_quantity_is_a_validation_error(client: AsyncClient, db_session: Session):
    product_id = _seed_product(db_session)
    resp = await client.post("/api/v1/cart/b2c/items", json={"product_id": product_id, "quantity": 0})
    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"


@pytest.mark.asyncio
async def test_unknown_variant_is_not_found(client: AsyncClient, db_session: Session):
    product_id = _seed_product(db_session)
    other_id = _seed_product(db_session)
    foreign = _seed_variant(db_session, other_id, price="8")

    resp = await client.post("/api/v1/cart/b2c/items", json={"product_id": product_id, "variant_id": foreign})
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Product option not found"


@pytest.mark.asyncio
async def test_authenticated_item_lifecycle(client: AsyncClient, db_session: Session, user_token: str):
    product_id = _seed_product(db_session, price="10")
    variant_id = _seed_variant(db_session, product_id, price="35")

    added = await client.post(
        "/api/v1/cart/b2c/items",
        json={"product_id": product_id, "variant_id": variant_id},
        headers=_auth(user_token),
    )
    assert added.status_code == 201, added.text
    item = added.json()["items"][0]
    assert item["variant"]["id"] == variant_id
    assert item["unit_price"] == 35.0

    updated = await client.patch(
        f"/api/v1/cart/b2c/items/{item['id']}", json={"quantity": 4}, headers=_auth(user_token)
    )
    assert updated.status_code == 200, updated.text
    assert updated.json()["items"][0]["quantity"] == 4
    assert updated.json()["subtotal"] == 140.0

    missing = await client.patch(
        f"/api/v1/cart/b2c/items/{uuid.uuid4()}", json={"quantity": 2}, headers=_auth(user_token)
    )
    assert missing.status_code == 404

    zeroed = await client.patch(
        f"/api/v1/cart/b2c/items/{item['id']}", json={"quantity": 0}, headers=_auth(user_token)
    )
    assert zeroed.status_code == 200
    assert zeroed.json()["items"] == []

    removed_twice = await client.delete(f"/api/v1/cart/b2c/items/{item['id']}", headers=_auth(user_token))
    assert removed_twice.status_code == 200
    assert removed_twice.json()["items"] == []


@pytest.mark.asyncio
async def test_items_of_other_users_are_out_of_reach(
    client: AsyncClient, db_session: Session, user_token: str, other_user_token: str
):
    product_id = _seed_product(db_session)
    added = await client.post("/api/v1/cart/b2c/items", json={"product_id": product_id}, headers=_auth(user_token))
    item_id = added.json()["items"][0]["id"]

    resp = await client.patch(f"/api/v1/cart/b2c/items/{item_id}", json={"quantity": 9}, headers=_auth(other_user_token))
    assert resp.status_code == 404

    owner_view = await client.get("/api/v1/cart/b2c", headers=_auth(user_token))
    assert owner_view.json()["items"][0]["quantity"] == 1


@pytest.mark.asyncio
async def test_invalid_bearer_token_falls_back_to_guest(client: AsyncClient, db_session: Session):
    product_id = _seed_product(db_session)
    resp = await client.post(
        "/api/v1/cart/b2c/items", json={"product_id": product_id}, headers=_auth("not-a-jwt")
    )
    assert resp.status_code == 201
    assert "cart_token_b2c=" in resp.headers.get("set-cookie", "")


@pytest.mark.asyncio
async def test_clear_cart_drops_guest_cookie(client: AsyncClient, db_session: Session):
    product_id = _seed_product(db_session)
    added = await client.post("/api/v1/cart/b2c/items", json={"product_id": product_id, "quantity": 3})
    cart_id = added.json()["id"]

    cleared = await client.delete("/api/v1/cart/b2c")
    assert cleared.status_code == 200
    assert cleared.json()["id"] == cart_id
    assert cleared.json()["items"] == []
    set_cookie = cleared.headers.get("set-cookie", "")
    assert "cart_token_b2c=" in set_cookie
    assert "Max-Age=0" in set_cookie

    after = await client.get("/api/v1/cart/b2c")
    assert after.json()["id"] is None


@pytest.mark.asyncio
async def test_clear_cart_keeps_user_cart(client: AsyncClient, db_session: Session, user_token: str):
    product_id = _seed_product(db_session)
    added = await client.post("/api/v1/cart/b2c/items", json={"product_id": product_id}, headers=_auth(user_token))

    cleared = await client.delete("/api/v1/cart/b2c", headers=_auth(user_token))
    assert cleared.status_code == 200
    assert "set-cookie" not in cleared.headers

    view = await client.get("/api/v1/cart/b2c", headers=_auth(user_token))
    assert view.json()["id"] == added.json()["id"]
    assert view.json()["items"] == []


@pytest.mark.asyncio
async def test_free_shipping_status_in_cart_view(client: AsyncClient, db_session: Session):
    db_session.add(FreeShippingRule(applies_to=RuleScope.b2c, threshold_amount=Decimal("100"), is_active=True))
    db_session.commit()
    product_id = _seed_product(db_session, price="40")

    resp = await client.post("/api/v1/cart/b2c/items", json={"product_id": product_id, "quantity": 2})
    shipping = resp.json()["free_shipping"]
    assert shipping["eligible"] is False
    assert shipping["threshold"] == 100.0
    assert shipping["remaining"] == 20.0

    resp = await client.post("/api/v1/cart/b2c/items", json={"product_id": product_id})
    assert resp.json()["free_shipping"]["eligible"] is True


@pytest.mark.asyncio
async def test_checkout_summary(client: AsyncClient, db_session: Session, user_token: str):
    zone = ShippingZone(governorate=f"Alexandria-{uuid.uuid4()}", base_rate=Decimal("70"), estimated_days=3)
    db_session.add(zone)
    db_session.flush()
    zone_id = str(zone.id)
    db_session.commit()
    product_id = _seed_product(db_session, price="200", has_tax=True)

    empty = await client.get("/api/v1/cart/b2c/checkout-summary", headers=_auth(user_token))
    assert empty.status_code == 422

    await client.post("/api/v1/cart/b2c/items", json={"product_id": product_id}, headers=_auth(user_token))
    summary = await client.get(
        "/api/v1/cart/b2c/checkout-summary",
        params={"shipping_zone_id": zone_id},
        headers=_auth(user_token),
    )
    assert summary.status_code == 200, summary.text
    body = summary.json()
    assert body["subtotal"] == 200.0
    assert body["tax_amount"] == 28.0
    assert body["shipping_fee"] == 70.0
    assert body["total"] == 298.0

    unknown_zone = await client.get(
        "/api/v1/cart/b2c/checkout-summary",
        params={"shipping_zone_id": str(uuid.uuid4())},
        headers=_auth(user_token),
    )
    assert unknown_zone.status_code == 404


@pytest.mark.asyncio
async def test_shipping_zones_are_public(client: AsyncClient, db_session: Session):
    db_session.add_all(
        [
            ShippingZone(governorate="Cairo", base_rate=Decimal("45"), estimated_days=2, sort_order=1),
            ShippingZone(governorate="Aswan", base_rate=Decimal("90"), estimated_days=6, sort_order=2),
        ]
    )
    db_session.commit()

    resp = await client.get("/api/v1/shipping/zones")
    assert resp.status_code == 200
    assert [zone["governorate"] for zone in resp.json()] == ["Cairo", "Aswan"]


@pytest.mark.asyncio
async def test_free_shipping_admin_requires_admin_scope(client: AsyncClient, user_token: str, admin_token: str):
    payload = {"applies_to": "b2c", "threshold_amount": 350, "is_active": True}

    anonymous = await client.put("/api/v1/admin/free-shipping", json=payload)
    assert anonymous.status_code == 401

    forbidden = await client.put("/api/v1/admin/free-shipping", json=payload, headers=_auth(user_token))
    assert forbidden.status_code == 403

    created = await client.put("/api/v1/admin/free-shipping", json=payload, headers=_auth(admin_token))
    assert created.status_code == 200, created.text
    rule_id = created.json()["id"]

    payload["threshold_amount"] = 500
    updated = await client.put("/api/v1/admin/free-shipping", json=payload, headers=_auth(admin_token))
    assert updated.json()["id"] == rule_id
    assert updated.json()["threshold_amount"] == 500.0

    rules = await client.get("/api/v1/admin/free-shipping", headers=_auth(admin_token))
    assert len(rules.json()) == 1


@pytest.mark.asyncio
async def test_abandoned_carts_report(client: AsyncClient, db_session: Session, admin_token: str):
    product_id = _seed_product(db_session, price="15")
    await client.post("/api/v1/cart/b2c/items", json={"product_id": product_id, "quantity": 2})

    fresh = await client.get("/api/v1/admin/carts/abandoned", headers=_auth(admin_token))
    assert fresh.status_code == 200
    assert fresh.json() == []

    everything = await client.get(
        "/api/v1/admin/carts/abandoned", params={"older_than_minutes": 0}, headers=_auth(admin_token)
    )
    carts = everything.json()
    assert len(carts) == 1
    assert carts[0]["is_guest"] is True
    assert carts[0]["subtotal"] == 30.0


@pytest.mark.asyncio
async def test_metrics_expose_cart_operations(client: AsyncClient, db_session: Session):
    product_id = _seed_product(db_session)
    await client.post("/api/v1/cart/b2c/items", json={"product_id": product_id})

    resp = await client.get("/metrics")
    assert resp.status_code == 200
    assert "spicecart_cart_operations_total" in resp.text


async def _failing_async(*args, **kwargs):
    raise OperationalError("INSERT INTO cart_items", {}, Exception("disk I/O error"))


@pytest.mark.asyncio
async def test_store_error_on_write_is_generic_503(
    client: AsyncClient, db_session: Session, user_token: str, monkeypatch
):
    product_id = _seed_product(db_session)
    monkeypatch.setattr(cart_store, "flush_async", _failing_async)

    resp = await client.post("/api/v1/cart/b2c/items", json={"product_id": product_id}, headers=_auth(user_token))
    assert resp.status_code == 503
    assert resp.json() == {
        "status": "error",
        "code": "store_failure",
        "detail": "Cart is temporarily unavailable, please try again",
    }
    assert product_id not in resp.text
    assert "INSERT" not in resp.text

    monkeypatch.undo()
    view = await client.get("/api/v1/cart/b2c", headers=_auth(user_token))
    assert view.json()["id"] is None


@pytest.mark.asyncio
async def test_store_error_on_commit_leaves_cart_unchanged(
    client: AsyncClient, db_session: Session, user_token: str, monkeypatch
):
    product_id = _seed_product(db_session)
    added = await client.post(
        "/api/v1/cart/b2c/items", json={"product_id": product_id, "quantity": 1}, headers=_auth(user_token)
    )
    cart_id = added.json()["id"]

    monkeypatch.setattr(cart_router, "commit_async", _failing_async)
    resp = await client.post(
        "/api/v1/cart/b2c/items", json={"product_id": product_id, "quantity": 3}, headers=_auth(user_token)
    )
    assert resp.status_code == 503
    assert resp.json()["code"] == "store_failure"
    assert cart_id not in resp.text

    monkeypatch.undo()
    view = (await client.get("/api/v1/cart/b2c", headers=_auth(user_token))).json()
    assert view["id"] == cart_id
    assert [item["quantity"] for item in view["items"]] == [1]


@pytest.mark.asyncio
async def test_price_hidden_body_points_to_contact_path(client: AsyncClient, db_session: Session):
    product_id = _seed_product(db_session, is_b2b=True, b2b_price_hidden=True)
    resp = await client.post("/api/v1/cart/b2b/items", json={"product_id": product_id})
    assert resp.status_code == 409
    body = resp.json()
    assert body["contact_label"] == settings.B2B_CONTACT_LABEL
    assert body["contact_url"] == settings.B2B_CONTACT_URL

    db_session.add(B2BSettings(id=1, price_hidden=False, contact_label="Wholesale desk", contact_url="/b2b/contact"))
    db_session.commit()
    resp = await client.post("/api/v1/cart/b2b/items", json={"product_id": product_id})
    assert resp.json()["contact_label"] == "Wholesale desk"
    assert resp.json()["contact_url"] == "/b2b/contact"


@pytest.mark.asyncio
async def test_wholesale_variant_priced_product_can_be_added(client: AsyncClient, db_session: Session):
    product_id = _seed_product(db_session, price=None, is_b2b=True)
    variant_id = _seed_variant(db_session, product_id, price="30")

    resp = await client.post(
        "/api/v1/cart/b2b/items", json={"product_id": product_id, "variant_id": variant_id, "quantity": 2}
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["subtotal"] == 60.0

    bare = await client.post("/api/v1/cart/b2b/items", json={"product_id": product_id})
    assert bare.status_code == 409
    assert bare.json()["code"] == "price_hidden"


@pytest.mark.asyncio
async def test_quantity_above_cap_is_rejected(client: AsyncClient, db_session: Session):
    product_id = _seed_product(db_session)
    resp = await client.post(
        "/api/v1/cart/b2c/items", json={"product_id": product_id, "quantity": 10**12}
    )
    assert resp.status_code == 422

    cart = await client.get("/api/v1/cart/b2c")
    assert cart.json()["items"] == []


@pytest.mark.asyncio
async def test_shipping_zone_exposes_per_kg_rate(client: AsyncClient, db_session: Session):
    db_session.add(ShippingZone(governorate="Luxor", base_rate=Decimal("80"), per_kg_rate=Decimal("7.5"), estimated_days=5))
    db_session.commit()

    zones = (await client.get("/api/v1/shipping/zones")).json()
    assert zones[0]["per_kg_rate"] == 7.5
