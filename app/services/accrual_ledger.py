"""
Accrual Ledger for referral rewards.

Records that a referral event has been credited, at most once per event.
The event id is derived from the event's natural key so every delivery of
the same real-world event maps to the same id; the unique index on
referral_accruals.event_id turns the second insert into a duplicate
instead of a second credit.

A duplicate is a successful no-op for callers, not an error.
"""
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models.referral_accrual import ReferralAccrual
from ..utils.clock import Clock, SystemClock
from ..utils.exceptions import ValidationError

logger = logging.getLogger(__name__)

DUPLICATE = 'duplicate'


def derive_event_id(
    tenant_id: Optional[str],
    event_type: str,
    referred_user_id: str,
    milestone_key: Optional[str] = None
) -> str:
    """
    Deterministic idempotency key for a referral event.

    SHA-256 over (tenant, event type, referred user, milestone key).
    """
    parts = [
        tenant_id or '',
        event_type,
        str(referred_user_id),
        milestone_key or '',
    ]
    natural_key = '\x1f'.join(parts)
    return hashlib.sha256(natural_key.encode('utf-8')).hexdigest()


@dataclass(frozen=True)
class AccrualRecord:
    """What to credit for one event."""
    tenant_id: Optional[str]
    event_type: str
    referrer_user_id: str
    referred_user_id: str
    referrer_points: int
    referred_points: int
    milestone_key: Optional[str] = None
    final_multiplier: Optional[Decimal] = None
    campaign_name: Optional[str] = None
    applied_at: Optional[datetime] = None

    @property
    def points_applied(self) -> int:
        return self.referrer_points + self.referred_points


@dataclass(frozen=True)
class AccrualOutcome:
    """Result of try_record_accrual()."""
    applied: bool
    event_id: str
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {'applied': self.applied, 'event_id': self.event_id}
        if self.reason:
            data['reason'] = self.reason
        return data


class AccrualLedger:
    """
    Idempotent ledger of referral point credits.

    Usage:
        ledger = AccrualLedger()
        outcome = ledger.try_record_accrual(event_id, record)
        if not outcome.applied:
            ...  # already credited earlier
    """

    def __init__(self, clock: Clock = None):
        self.clock = clock or SystemClock()

    def get_accrual(self, event_id: str) -> Optional[ReferralAccrual]:
        return ReferralAccrual.query.filter_by(event_id=event_id).first()

    def try_record_accrual(self, event_id: str, record: AccrualRecord) -> AccrualOutcome:
        """
        Insert the accrual unless this event id was already recorded.

        Args:
            event_id: Idempotency key, usually from derive_event_id()
            record: Points and parties for the event

        Returns:
            AccrualOutcome(applied=True) for the first call,
            AccrualOutcome(applied=False, reason='duplicate') afterwards
        """
        self._validate(event_id, record)

        if self.get_accrual(event_id) is not None:
            logger.info('Duplicate referral accrual ignored: %s', event_id)
            return AccrualOutcome(applied=False, event_id=event_id, reason=DUPLICATE)

        entry = ReferralAccrual(
            event_id=event_id,
            tenant_id=record.tenant_id,
            event_type=record.event_type,
            milestone_key=record.milestone_key,
            referrer_user_id=str(record.referrer_user_id),
            referred_user_id=str(record.referred_user_id),
            referrer_points=record.referrer_points,
            referred_points=record.referred_points,
            points_applied=record.points_applied,
            final_multiplier=record.final_multiplier,
            campaign_name=record.campaign_name,
            applied_at=record.applied_at or self.clock.now(),
        )
        db.session.add(entry)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            if self.get_accrual(event_id) is None:
                raise
            # Lost the race against a concurrent delivery of the same event
            logger.info('Concurrent duplicate referral accrual ignored: %s', event_id)
            return AccrualOutcome(applied=False, event_id=event_id, reason=DUPLICATE)

        logger.info(
            'Referral accrual %s recorded: %s referrer=%s +%d referred=%s +%d',
            event_id, record.event_type,
            record.referrer_user_id, record.referrer_points,
            record.referred_user_id, record.referred_points
        )
        return AccrualOutcome(applied=True, event_id=event_id)

    def get_points_balance(self, user_id: str, tenant_id: Optional[str] = None) -> int:
        """Referral points credited to a user, as referrer or as referred."""
        user_id = str(user_id)

        as_referrer = db.session.query(db.func.coalesce(db.func.sum(ReferralAccrual.referrer_points), 0)).filter(
            ReferralAccrual.referrer_user_id == user_id
        )
        as_referred = db.session.query(db.func.coalesce(db.func.sum(ReferralAccrual.referred_points), 0)).filter(
            ReferralAccrual.referred_user_id == user_id
        )
        if tenant_id is not None:
            as_referrer = as_referrer.filter(ReferralAccrual.tenant_id == tenant_id)
            as_referred = as_referred.filter(ReferralAccrual.tenant_id == tenant_id)

        return int(as_referrer.scalar() or 0) + int(as_referred.scalar() or 0)

    def _validate(self, event_id: str, record: AccrualRecord) -> None:
        if not event_id:
            raise ValidationError('event_id is required', 'event_id')
        if not record.referrer_user_id or not record.referred_user_id:
            raise ValidationError('Both referrer and referred user ids are required', 'user_id')
        if record.referrer_points < 0 or record.referred_points < 0:
            raise ValidationError('Accrued points must be >= 0', 'points')
