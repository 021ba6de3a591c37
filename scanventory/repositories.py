from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from scanventory.models import LocationCache, ProductHistory, Shop, ShopSession


class Repository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def save(self, obj):
        self.session.add(obj)
        self.session.commit()
        self.session.refresh(obj)
        return obj


class ShopsRepository(Repository):
    def get_by_domain(self, shop_domain: str) -> Shop | None:
        return self.session.scalars(select(Shop).where(Shop.shop == shop_domain)).first()

    def get_with_dependents(self, shop_domain: str) -> Shop | None:
        return self.session.scalars(
            select(Shop)
            .where(Shop.shop == shop_domain)
            .options(
                selectinload(Shop.settings),
                selectinload(Shop.product_history),
                selectinload(Shop.product_cache),
                selectinload(Shop.location_cache),
                selectinload(Shop.jobs),
            )
        ).first()

    def get_or_create(self, shop_domain: str) -> Shop:
        shop = self.get_by_domain(shop_domain)
        if shop is None:
            shop = self.save(Shop(shop=shop_domain))
        return shop

    def delete_by_domain(self, shop_domain: str) -> int:
        """Delete the shop row; the store cascades to every dependent table. Does not commit."""
        result = self.session.execute(delete(Shop).where(Shop.shop == shop_domain))
        return result.rowcount or 0

    def record_adjustment(
        self,
        *,
        shop: Shop,
        location_id: str,
        quantity_change: int,
        reason: str,
        shopify_product_id: str | None = None,
        barcode: str | None = None,
    ) -> ProductHistory:
        return self.save(
            ProductHistory(
                shop_id=shop.id,
                shopify_product_id=shopify_product_id,
                barcode=barcode,
                quantity_change=quantity_change,
                location_id=location_id,
                reason=reason,
            )
        )

    def replace_location_cache(self, *, shop: Shop, locations: list[dict]) -> None:
        self.session.execute(delete(LocationCache).where(LocationCache.shop_id == shop.id))
        for location in locations:
            self.session.add(
                LocationCache(
                    shop_id=shop.id,
                    shopify_location_id=location["id"],
                    location_name=location["name"],
                )
            )
        self.session.commit()


class SessionsRepository(Repository):
    def find_for_shop(self, shop_domain: str) -> ShopSession | None:
        """Return the shop's offline session, falling back to an online one."""
        return self.session.scalars(
            select(ShopSession)
            .where(ShopSession.shop == shop_domain)
            .order_by(ShopSession.is_online.asc(), ShopSession.id.asc())
        ).first()

    def delete_for_shop(self, shop_domain: str) -> int:
        """Delete every session row for the domain. Does not commit."""
        result = self.session.execute(delete(ShopSession).where(ShopSession.shop == shop_domain))
        return result.rowcount or 0
