"""Portal access tokens.

A token is 32 random bytes (url-safe base64) handed out exactly once; only its
sha256 hex digest is persisted. Issuing a link expires every still-valid link
of the same work unit and scope in the same transaction, so at most one link
resolves at a time. Links are never deleted. Tokens must never reach logs;
log the link id instead.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import or_, select, update

from payplan.common.clock import utcnow
from payplan.common.config import settings
from payplan.common.logging import logger
from payplan.common.metrics import portal_links_issued_total, portal_lookups_total
from payplan.services.planner.models import WorkUnit
from payplan.services.portal.models import PLAN_SCOPE, PortalLink

TOKEN_BYTES = 32
MAX_TTL_DAYS = 365


@dataclass(frozen=True)
class IssuedLink:
    token: str
    link: PortalLink
    url: str


def generate_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def link_ttl_days(raw: int | None = None) -> int:
    """Configured link lifetime clamped to 1..365 days."""

    value = settings.portal_link_ttl_days if raw is None else raw
    if value is None or value <= 0:
        return 30
    return min(max(int(value), 1), MAX_TTL_DAYS)


def portal_url(token: str) -> str:
    return f"{settings.portal_base_url.rstrip('/')}/p/{token}"


def _valid_at(now: datetime):
    return or_(PortalLink.expires_at.is_(None), PortalLink.expires_at > now)


class PortalTokenService:
    """Issues, resolves and touches portal links inside the caller's transaction."""

    def __init__(self, service_name: str = "portal", ttl_days: int | None = None) -> None:
        self.service_name = service_name
        self.ttl_days = link_ttl_days(ttl_days)

    def issue(self, db, work_unit: WorkUnit, now: datetime | None = None, scope: str = PLAN_SCOPE) -> IssuedLink:
        """Expire outstanding links for the work unit and create a fresh one."""

        now = now or utcnow()
        # Row lock serializes concurrent issuers for the same work unit.
        db.execute(select(WorkUnit.id).where(WorkUnit.id == work_unit.id).with_for_update())
        expired = db.execute(
            update(PortalLink)
            .where(
                PortalLink.work_unit_id == work_unit.id,
                PortalLink.scope == scope,
                _valid_at(now),
            )
            .values(expires_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount
        token = generate_token()
        link = PortalLink(
            owner_id=work_unit.owner_id,
            client_id=work_unit.client_id,
            work_unit_id=work_unit.id,
            scope=scope,
            token_hash=hash_token(token),
            created_at=now,
            expires_at=now + timedelta(days=self.ttl_days),
        )
        db.add(link)
        db.flush()
        portal_links_issued_total.labels(service=self.service_name).inc()
        logger.info("portal_link_issued link_id=%s work_unit_id=%s expired_previous=%s", link.id, work_unit.id, expired)
        return IssuedLink(token=token, link=link, url=portal_url(token))

    def resolve(self, db, token: str, now: datetime | None = None, scope: str = PLAN_SCOPE) -> PortalLink | None:
        """Return the valid link for a presented token; missing and expired look the same."""

        now = now or utcnow()
        if not token:
            portal_lookups_total.labels(service=self.service_name, outcome="not_found").inc()
            return None
        link = db.execute(
            select(PortalLink).where(
                PortalLink.token_hash == hash_token(token),
                PortalLink.scope == scope,
                _valid_at(now),
            )
        ).scalar_one_or_none()
        outcome = "found" if link is not None else "not_found"
        portal_lookups_total.labels(service=self.service_name, outcome=outcome).inc()
        return link

    def touch(self, db, link: PortalLink, now: datetime | None = None) -> None:
        link.last_used_at = now or utcnow()
