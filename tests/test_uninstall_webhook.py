from __future__ import annotations

from sqlalchemy import func, select

from scanventory.models import Job, LocationCache, ProductCache, ProductHistory, Shop, ShopSession, ShopSettings
from scanventory.repositories import SessionsRepository
from scanventory.security import WebhookContext
from scanventory.uninstall import UninstallOutcome, UninstallWorkflow
from tests.factories import create_test_session, create_test_shop, create_test_shop_with_all_data
from tests.webhooks import build_webhook_request

_DEPENDENT_MODELS = (ShopSettings, ProductHistory, ProductCache, LocationCache, Job)


def _count(db_session, model, **filters) -> int:
    query = select(func.count()).select_from(model)
    for column, value in filters.items():
        query = query.where(getattr(model, column) == value)
    return db_session.scalar(query)


def _post_uninstall(api_client, shop: str, **kwargs):
    body, headers = build_webhook_request(shop, "app/uninstalled", {}, **kwargs)
    return api_client.post("/webhooks/app/uninstalled", content=body, headers=headers)


def test_uninstall_deletes_shop_data_and_sessions(api_client, db_session):
    data = create_test_shop_with_all_data(db_session)
    shop_domain = data.shop.shop
    shop_id = data.shop.id
    create_test_session(db_session, shop_domain)
    for model in _DEPENDENT_MODELS:
        assert _count(db_session, model, shop_id=shop_id) > 0

    response = _post_uninstall(api_client, shop_domain)

    assert response.status_code == 200
    assert response.json() == {"received": True, "outcome": "deleted"}
    db_session.expire_all()
    assert _count(db_session, Shop, shop=shop_domain) == 0
    for model in _DEPENDENT_MODELS:
        assert _count(db_session, model, shop_id=shop_id) == 0
    assert _count(db_session, ShopSession, shop=shop_domain) == 0


def test_uninstall_deletes_shop_without_related_data(api_client, db_session):
    shop = create_test_shop(db_session)
    shop_domain = shop.shop
    create_test_session(db_session, shop_domain)

    response = _post_uninstall(api_client, shop_domain)

    assert response.status_code == 200
    db_session.expire_all()
    assert _count(db_session, Shop, shop=shop_domain) == 0
    assert _count(db_session, ShopSession, shop=shop_domain) == 0


def test_uninstall_without_session_is_a_no_op(api_client, db_session):
    data = create_test_shop_with_all_data(db_session)
    shop_domain = data.shop.shop
    shop_id = data.shop.id

    response = _post_uninstall(api_client, shop_domain)

    assert response.status_code == 200
    assert response.json()["outcome"] == "already_uninstalled"
    db_session.expire_all()
    assert _count(db_session, Shop, shop=shop_domain) == 1
    assert _count(db_session, ProductHistory, shop_id=shop_id) == 2


def test_uninstall_without_shop_record_deletes_dangling_session(api_client, db_session):
    shop_domain = "non-existent-shop.myshopify.com"
    create_test_session(db_session, shop_domain)

    response = _post_uninstall(api_client, shop_domain)

    assert response.status_code == 200
    assert response.json()["outcome"] == "sessions_only"
    db_session.expire_all()
    assert _count(db_session, ShopSession, shop=shop_domain) == 0


def test_uninstall_is_idempotent_across_redeliveries(api_client, db_session):
    data = create_test_shop_with_all_data(db_session)
    shop_domain = data.shop.shop
    create_test_session(db_session, shop_domain)

    first = _post_uninstall(api_client, shop_domain)
    second = _post_uninstall(api_client, shop_domain)

    assert first.status_code == 200
    assert second.status_code == 200
    assert first.json()["outcome"] == "deleted"
    assert second.json()["outcome"] == "already_uninstalled"


def test_uninstall_leaves_other_shops_untouched(api_client, db_session):
    target = create_test_shop_with_all_data(db_session)
    other = create_test_shop_with_all_data(db_session)
    target_domain = target.shop.shop
    other_domain = other.shop.shop
    other_id = other.shop.id
    create_test_session(db_session, target_domain)
    create_test_session(db_session, other_domain)

    response = _post_uninstall(api_client, target_domain)

    assert response.status_code == 200
    db_session.expire_all()
    assert _count(db_session, Shop, shop=other_domain) == 1
    assert _count(db_session, ProductHistory, shop_id=other_id) == 2
    assert _count(db_session, ShopSession, shop=other_domain) == 1


def test_uninstall_rejects_invalid_hmac(api_client, db_session):
    shop = create_test_shop(db_session)
    shop_domain = shop.shop
    create_test_session(db_session, shop_domain)

    response = _post_uninstall(api_client, shop_domain, secret="wrong_secret")

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid webhook HMAC"
    db_session.expire_all()
    assert _count(db_session, Shop, shop=shop_domain) == 1
    assert _count(db_session, ShopSession, shop=shop_domain) == 1


def test_uninstall_requires_topic_header(api_client):
    body, headers = build_webhook_request("example.myshopify.com", "app/uninstalled", {})
    del headers["X-Shopify-Topic"]

    response = api_client.post("/webhooks/app/uninstalled", content=body, headers=headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing x-shopify-topic header"


def test_uninstall_failure_rolls_back_and_returns_generic_error(api_client, db_session, monkeypatch):
    data = create_test_shop_with_all_data(db_session)
    shop_domain = data.shop.shop
    shop_id = data.shop.id
    create_test_session(db_session, shop_domain)

    def failing_delete_for_shop(self, shop_domain: str) -> int:
        raise RuntimeError("connection dropped")

    monkeypatch.setattr(SessionsRepository, "delete_for_shop", failing_delete_for_shop)

    response = _post_uninstall(api_client, shop_domain)

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error."}
    db_session.expire_all()
    assert _count(db_session, Shop, shop=shop_domain) == 1
    assert _count(db_session, Job, shop_id=shop_id) == 1
    assert _count(db_session, ShopSession, shop=shop_domain) == 1


def test_workflow_reports_pre_deletion_counts(db_session):
    data = create_test_shop_with_all_data(db_session)
    shop_domain = data.shop.shop
    shop_session = create_test_session(db_session, shop_domain)
    context = WebhookContext(
        shop=shop_domain,
        session=shop_session,
        topic="app/uninstalled",
        webhook_id="test-webhook-id",
        api_version=None,
        payload={},
    )

    result = UninstallWorkflow(db_session).run(context)

    assert result.outcome is UninstallOutcome.DELETED
    assert result.sessions_deleted == 1
    assert result.counts is not None
    assert result.counts.settings == 1
    assert result.counts.product_history == 2
    assert result.counts.product_cache == 1
    assert result.counts.location_cache == 1
    assert result.counts.jobs == 1
