from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, sessionmaker

from partnerhub.db.models import Partner, ReportToken
from partnerhub.errors import AuthenticationFailed, NotFound


logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def _unexpired(query, now: datetime):
    return query.filter(or_(ReportToken.expires_at.is_(None), ReportToken.expires_at > now))


def _scoped(query, partner_id: str, project_id: Optional[str]):
    query = query.filter(ReportToken.partner_id == partner_id)
    if project_id:
        return query.filter(ReportToken.project_id == project_id)
    return query.filter(ReportToken.project_id.is_(None))


class ReportTokenService:
    def __init__(self, frontend_url: str) -> None:
        self.frontend_url = frontend_url.rstrip("/")

    def report_url(self, token: str) -> str:
        return f"{self.frontend_url}/report/{token}"

    def generate_token(
        self,
        db: Session,
        partner_id: str,
        project_id: Optional[str] = None,
        expires_in_days: Optional[int] = None,
    ) -> ReportToken:
        partner = self._require_partner(db, partner_id)
        active = _scoped(db.query(ReportToken), partner_id, project_id).filter(ReportToken.is_active.is_(True))
        existing = _unexpired(active, datetime.utcnow()).first()
        if existing:
            logger.info("reusing active report token", extra={"partner_id": partner_id, "token_id": existing.id})
            return existing
        return self._create(db, partner, project_id, expires_in_days)

    def regenerate_token(
        self,
        db: Session,
        partner_id: str,
        project_id: Optional[str] = None,
        expires_in_days: Optional[int] = None,
    ) -> ReportToken:
        partner = self._require_partner(db, partner_id)
        _scoped(db.query(ReportToken), partner_id, project_id).filter(ReportToken.is_active.is_(True)).update(
            {ReportToken.is_active: False, ReportToken.updated_at: datetime.utcnow()},
            synchronize_session="fetch",
        )
        token = self._create(db, partner, project_id, expires_in_days)
        logger.info("report token regenerated", extra={"partner_id": partner_id, "token_id": token.id})
        return token

    def deactivate_token(self, db: Session, partner_id: str, token_id: Optional[str] = None) -> int:
        query = db.query(ReportToken).filter(ReportToken.partner_id == partner_id, ReportToken.is_active.is_(True))
        if token_id:
            query = query.filter(ReportToken.id == token_id)
        affected = query.update(
            {ReportToken.is_active: False, ReportToken.updated_at: datetime.utcnow()},
            synchronize_session="fetch",
        )
        if not affected:
            raise NotFound("TOKEN_001", details={"partnerId": partner_id})
        db.commit()
        logger.info("report token deactivated", extra={"partner_id": partner_id})
        return affected

    def get_active_for_partner(self, db: Session, partner_id: str) -> Optional[ReportToken]:
        query = db.query(ReportToken).filter(ReportToken.partner_id == partner_id, ReportToken.is_active.is_(True))
        return (
            _unexpired(query, datetime.utcnow())
            .order_by(ReportToken.created_at.desc())
            .first()
        )

    def get_by_token(self, db: Session, token: str) -> Optional[ReportToken]:
        return db.query(ReportToken).filter(ReportToken.token == token).first()

    def authenticate(self, db: Session, token: Optional[str], now: Optional[datetime] = None) -> ReportToken:
        if not token:
            raise AuthenticationFailed("missing", "AUTH_001")
        record = self.get_by_token(db, token)
        if not record:
            logger.warning("report token not found")
            raise NotFound("TOKEN_001")
        reason = record.invalid_reason(now)
        if reason:
            logger.warning("report token rejected: %s", reason, extra={"token_id": record.id})
            raise AuthenticationFailed(reason, "AUTH_002", message=f"report token {reason}")
        return record

    def _require_partner(self, db: Session, partner_id: str) -> Partner:
        partner = db.get(Partner, partner_id)
        if not partner:
            raise NotFound.partner(partner_id)
        return partner

    def _create(
        self,
        db: Session,
        partner: Partner,
        project_id: Optional[str],
        expires_in_days: Optional[int],
    ) -> ReportToken:
        expires_at = datetime.utcnow() + timedelta(days=expires_in_days) if expires_in_days else None
        token = ReportToken(
            partner_id=partner.id,
            project_id=project_id or None,
            organization_id=partner.organization_id,
            token=secrets.token_hex(TOKEN_BYTES),
            expires_at=expires_at,
            is_active=True,
        )
        db.add(token)
        db.commit()
        logger.info("report token issued", extra={"partner_id": partner.id, "token_id": token.id})
        return token


def touch_last_used(session_factory: sessionmaker, token_id: str) -> None:
    """Stamp ``last_used_at``; runs after the response and never raises."""
    try:
        with session_factory() as db:
            record = db.get(ReportToken, token_id)
            if record:
                record.last_used_at = datetime.utcnow()
                db.commit()
    except Exception:
        logger.exception("failed to update token last_used_at", extra={"token_id": token_id})
