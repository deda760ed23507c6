"""
Referral configuration models.

One global configuration row (name='default', is_active) plus per-tenant
overrides and promotional campaigns hanging off it. Reward blocks are
stored as JSON; to_snapshot() turns the rows into the immutable
Configuration the reward engine works on.
"""
from typing import Dict, Any

from ..extensions import db
from ..utils.clock import utcnow


class ReferralConfiguration(db.Model):
    """
    Global referral reward configuration.
    Exactly one row is active with name 'default'.
    """
    __tablename__ = 'referral_configurations'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), nullable=False, unique=True, default='default')

    # Reward blocks (JSON, see referral_rewards.types for shapes)
    signup_reward = db.Column(db.JSON, nullable=False, default=dict)
    first_purchase_reward = db.Column(db.JSON, nullable=False, default=dict)
    milestone_rewards = db.Column(db.JSON, nullable=False, default=list)

    # Global tier multipliers - not tenant-overridable
    tier_multipliers = db.Column(db.JSON, nullable=False, default=dict)

    settings = db.Column(db.JSON, nullable=False, default=dict)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_updated_by = db.Column(db.String(100))

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    tenant_overrides = db.relationship(
        'TenantReferralOverride',
        backref='configuration',
        order_by='TenantReferralOverride.id',
        cascade='all, delete-orphan'
    )
    campaigns = db.relationship(
        'ReferralCampaign',
        backref='configuration',
        order_by='ReferralCampaign.position',
        cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f'<ReferralConfiguration {self.name} active={self.is_active}>'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'is_active': self.is_active,
            'signup_reward': self.signup_reward,
            'first_purchase_reward': self.first_purchase_reward,
            'milestone_rewards': list(self.milestone_rewards or []),
            'tier_multipliers': dict(self.tier_multipliers or {}),
            'settings': self.settings,
            'campaigns': [c.to_dict() for c in self.campaigns],
            'tenant_overrides': [o.to_dict() for o in self.tenant_overrides],
            'last_updated_by': self.last_updated_by,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def to_snapshot(self):
        """Immutable engine view of this row and its children."""
        from ..services.referral_rewards.types import Configuration
        return Configuration.from_dict(self.to_dict())


class TenantReferralOverride(db.Model):
    """
    Tenant-specific replacement for the reward and settings blocks.
    At most one per tenant within a configuration.
    """
    __tablename__ = 'tenant_referral_overrides'

    id = db.Column(db.Integer, primary_key=True)
    configuration_id = db.Column(
        db.Integer, db.ForeignKey('referral_configurations.id'), nullable=False
    )

    tenant_id = db.Column(db.String(100), nullable=False)
    tenant_name = db.Column(db.String(255))
    owner_id = db.Column(db.String(100))  # Admin/user who owns this override

    signup_reward = db.Column(db.JSON)
    first_purchase_reward = db.Column(db.JSON)
    milestone_rewards = db.Column(db.JSON, default=list)
    settings = db.Column(db.JSON)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.UniqueConstraint('configuration_id', 'tenant_id', name='uq_referral_override_tenant'),
    )

    def __repr__(self):
        return f'<TenantReferralOverride tenant={self.tenant_id}>'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tenant_id': self.tenant_id,
            'tenant_name': self.tenant_name,
            'owner_id': self.owner_id,
            'signup_reward': self.signup_reward,
            'first_purchase_reward': self.first_purchase_reward,
            'milestone_rewards': list(self.milestone_rewards or []),
            'settings': self.settings,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class ReferralCampaign(db.Model):
    """
    Promotional multiplier window.
    position keeps the configured order, used as the last tie-break.
    """
    __tablename__ = 'referral_campaigns'

    id = db.Column(db.Integer, primary_key=True)
    configuration_id = db.Column(
        db.Integer, db.ForeignKey('referral_configurations.id'), nullable=False
    )
    position = db.Column(db.Integer, nullable=False, default=0)

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)

    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)

    # Decimal strings keep every digit the admin entered
    multiplier = db.Column(db.String(40), nullable=False, default='1.5')
    enabled = db.Column(db.Boolean, default=True, nullable=False)

    # Targeting (JSON list of tenant ids, empty = all tenants)
    target_tenants = db.Column(db.JSON, default=list)

    # Conditions
    min_purchase = db.Column(db.String(40), default='0')
    user_types = db.Column(db.JSON, default=lambda: ['all'])

    created_at = db.Column(db.DateTime, default=utcnow)

    __table_args__ = (
        db.Index('ix_referral_campaign_dates', 'start_date', 'end_date'),
    )

    def __repr__(self):
        return f'<ReferralCampaign {self.name}: x{self.multiplier}>'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'position': self.position,
            'name': self.name,
            'description': self.description,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'multiplier': self.multiplier,
            'enabled': self.enabled,
            'target_tenants': list(self.target_tenants or []),
            'conditions': {
                'min_purchase': self.min_purchase or '0',
                'user_types': list(self.user_types or ['all']),
            },
        }
