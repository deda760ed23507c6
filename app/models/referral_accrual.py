"""
Referral accrual ledger model.

One row per rewarded real-world event. The unique index on event_id is
what makes accrual at-most-once: a retried delivery of the same event
hits the constraint instead of crediting points twice.
"""
from typing import Dict, Any

from ..extensions import db
from ..utils.clock import utcnow


class ReferralAccrual(db.Model):
    """
    Points credited for one referral event.
    Balances are derived from these rows, never stored separately.
    """
    __tablename__ = 'referral_accruals'

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.String(64), nullable=False, unique=True)

    tenant_id = db.Column(db.String(100), index=True)
    event_type = db.Column(db.String(30), nullable=False)  # signup, first_purchase, milestone
    milestone_key = db.Column(db.String(100))

    referrer_user_id = db.Column(db.String(100), nullable=False, index=True)
    referred_user_id = db.Column(db.String(100), nullable=False, index=True)

    referrer_points = db.Column(db.Integer, nullable=False, default=0)
    referred_points = db.Column(db.Integer, nullable=False, default=0)
    points_applied = db.Column(db.Integer, nullable=False, default=0)

    # Multiplier audit trail
    final_multiplier = db.Column(db.Numeric(8, 4))
    campaign_name = db.Column(db.String(100))

    applied_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f'<ReferralAccrual {self.event_id[:12]} {self.event_type} +{self.points_applied}>'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'event_id': self.event_id,
            'tenant_id': self.tenant_id,
            'event_type': self.event_type,
            'milestone_key': self.milestone_key,
            'referrer_user_id': self.referrer_user_id,
            'referred_user_id': self.referred_user_id,
            'referrer_points': self.referrer_points,
            'referred_points': self.referred_points,
            'points_applied': self.points_applied,
            'final_multiplier': float(self.final_multiplier) if self.final_multiplier is not None else None,
            'campaign_name': self.campaign_name,
            'applied_at': self.applied_at.isoformat() if self.applied_at else None,
        }
