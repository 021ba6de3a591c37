from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from enum import Enum

from sqlalchemy.orm import Session

from scanventory.repositories import SessionsRepository, ShopsRepository
from scanventory.security import WebhookContext

logger = logging.getLogger(__name__)


class UninstallOutcome(str, Enum):
    ALREADY_UNINSTALLED = "already_uninstalled"
    SESSIONS_ONLY = "sessions_only"
    DELETED = "deleted"


@dataclass(frozen=True)
class ShopDataCounts:
    settings: int
    product_history: int
    product_cache: int
    location_cache: int
    jobs: int


@dataclass(frozen=True)
class UninstallResult:
    shop: str
    outcome: UninstallOutcome
    counts: ShopDataCounts | None = None
    sessions_deleted: int = 0


class UninstallWorkflow:
    """Deletes everything stored for a shop once its app uninstall is verified.

    Redelivered webhooks are absorbed rather than retried: a delivery with no
    session means a previous run already finished, and a delivery with a
    session but no shop row only clears the leftover sessions. The shop delete
    and the session delete share one transaction.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.shops = ShopsRepository(session)
        self.sessions = SessionsRepository(session)

    def run(self, context: WebhookContext) -> UninstallResult:
        shop_domain = context.shop
        logger.info("uninstall.received", extra={"shop_domain": shop_domain, "topic": context.topic})

        if context.session is None:
            logger.info("uninstall.no_session", extra={"shop_domain": shop_domain})
            return UninstallResult(shop=shop_domain, outcome=UninstallOutcome.ALREADY_UNINSTALLED)

        shop = self.shops.get_with_dependents(shop_domain)
        if shop is None:
            logger.info("uninstall.no_shop_record", extra={"shop_domain": shop_domain})
            sessions_deleted = self._commit(lambda: self.sessions.delete_for_shop(shop_domain))
            return UninstallResult(
                shop=shop_domain,
                outcome=UninstallOutcome.SESSIONS_ONLY,
                sessions_deleted=sessions_deleted,
            )

        counts = ShopDataCounts(
            settings=1 if shop.settings is not None else 0,
            product_history=len(shop.product_history),
            product_cache=len(shop.product_cache),
            location_cache=len(shop.location_cache),
            jobs=len(shop.jobs),
        )
        logger.info("uninstall.deleting", extra={"shop_domain": shop_domain, **asdict(counts)})

        def delete_all() -> int:
            # Detach the loaded graph so the ORM does not try to manage rows the store cascades.
            self.session.expunge_all()
            self.shops.delete_by_domain(shop_domain)
            return self.sessions.delete_for_shop(shop_domain)

        sessions_deleted = self._commit(delete_all)
        logger.info(
            "uninstall.deleted",
            extra={"shop_domain": shop_domain, "sessions_deleted": sessions_deleted},
        )
        return UninstallResult(
            shop=shop_domain,
            outcome=UninstallOutcome.DELETED,
            counts=counts,
            sessions_deleted=sessions_deleted,
        )

    def _commit(self, work):
        try:
            result = work()
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return result
