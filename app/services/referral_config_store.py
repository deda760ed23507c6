"""
Referral Configuration Store.

Reads and writes the global referral configuration, tenant overrides and
campaigns, and hands the reward engine an immutable Configuration
snapshot. Validation happens by building the snapshot first, so nothing
that the engine would reject is ever written.

Usage:
    store = ReferralConfigStore()
    configuration = store.get_active_configuration()
    store.upsert_tenant_override('spa-42', 'Downtown Spa', 'admin-1', {...})
"""
import logging
from typing import Optional, Dict, Any, Iterable

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models.referral_config import (
    ReferralConfiguration,
    TenantReferralOverride,
    ReferralCampaign,
)
from ..utils.exceptions import ConfigurationNotFoundError, InvalidConfigurationError
from .referral_rewards.types import (
    Configuration,
    TenantOverride,
    Campaign,
    DEFAULT_TIER_MULTIPLIERS,
)

logger = logging.getLogger(__name__)

# Keys accepted by update_configuration()
CONFIGURATION_FIELDS = (
    'signup_reward',
    'first_purchase_reward',
    'milestone_rewards',
    'tier_multipliers',
    'settings',
    'campaigns',
)

# Blocks a tenant override may carry
OVERRIDE_FIELDS = (
    'signup_reward',
    'first_purchase_reward',
    'milestone_rewards',
    'settings',
)


class ReferralConfigStore:
    """
    Persistence adapter for referral configuration.

    Args:
        name: Configuration name (only 'default' is used in practice)
        auto_provision: Create the default configuration on first read.
            None reads REFERRAL_AUTO_PROVISION_CONFIG from the app config.
    """

    def __init__(self, name: str = 'default', auto_provision: Optional[bool] = None):
        self.name = name
        self._auto_provision = auto_provision

    @property
    def auto_provision(self) -> bool:
        if self._auto_provision is not None:
            return self._auto_provision
        return bool(current_app.config.get('REFERRAL_AUTO_PROVISION_CONFIG', True))

    # ==================== Reads ====================

    def get_active_model(self) -> Optional[ReferralConfiguration]:
        return ReferralConfiguration.query.filter_by(name=self.name, is_active=True).first()

    def get_active_configuration(self) -> Configuration:
        """
        Snapshot of the single active configuration.

        Raises:
            ConfigurationNotFoundError: None is active and auto-provisioning
                is off, or the named row exists but was deactivated
        """
        return self._require_model().to_snapshot()

    def _require_model(self) -> ReferralConfiguration:
        model = self.get_active_model()
        if model is not None:
            return model

        if not self.auto_provision:
            logger.error('No active referral configuration %r and auto-provisioning is off', self.name)
            raise ConfigurationNotFoundError(self.name)

        if ReferralConfiguration.query.filter_by(name=self.name).first() is not None:
            # Deactivated on purpose; do not silently replace it
            logger.error('Referral configuration %r exists but is inactive', self.name)
            raise ConfigurationNotFoundError(self.name)

        return self._provision_default()

    def _default_tier_multipliers(self) -> Dict[str, Any]:
        configured = current_app.config.get('DEFAULT_TIER_MULTIPLIERS') or DEFAULT_TIER_MULTIPLIERS
        return dict(configured)

    def _provision_default(self) -> ReferralConfiguration:
        defaults = Configuration(
            name=self.name,
            tier_multipliers=self._default_tier_multipliers()
        ).to_dict()

        model = ReferralConfiguration(
            name=self.name,
            is_active=True,
            signup_reward=defaults['signup_reward'],
            first_purchase_reward=defaults['first_purchase_reward'],
            milestone_rewards=defaults['milestone_rewards'],
            tier_multipliers=defaults['tier_multipliers'],
            settings=defaults['settings'],
            last_updated_by='system',
        )
        db.session.add(model)
        try:
            db.session.commit()
        except IntegrityError:
            # Another worker provisioned it first
            db.session.rollback()
            model = self.get_active_model()
            if model is None:
                raise ConfigurationNotFoundError(self.name)
            return model

        logger.info('Provisioned default referral configuration %r', self.name)
        return model

    # ==================== Admin writes ====================

    def update_configuration(self, data: Dict[str, Any], updated_by: str = None) -> Configuration:
        """
        Replace top-level blocks of the active configuration.

        Only the keys in CONFIGURATION_FIELDS are applied; each one
        replaces the stored block as a whole. Campaigns, when present,
        replace the full campaign list.

        Raises:
            InvalidConfigurationError: The merged configuration is invalid
        """
        if not isinstance(data, dict):
            raise InvalidConfigurationError('Configuration update must be an object')

        model = self._require_model()
        updates = {key: data[key] for key in CONFIGURATION_FIELDS if key in data}
        ignored = set(data) - set(CONFIGURATION_FIELDS)
        if ignored:
            logger.debug('Ignoring non-updatable configuration keys: %s', sorted(ignored))

        merged = model.to_dict()
        merged.update(updates)
        snapshot = Configuration.from_dict(merged)

        model.signup_reward = snapshot.signup_reward.to_dict()
        model.first_purchase_reward = snapshot.first_purchase_reward.to_dict()
        model.milestone_rewards = [m.to_dict() for m in snapshot.milestone_rewards]
        model.tier_multipliers = {tier: str(value) for tier, value in snapshot.tier_multipliers.items()}
        model.settings = snapshot.settings.to_dict()
        if 'campaigns' in updates:
            self._replace_campaigns(model, snapshot.campaigns)
        model.last_updated_by = updated_by

        db.session.commit()
        logger.info('Referral configuration %r updated by %s (%s)', self.name, updated_by, sorted(updates))
        return model.to_snapshot()

    def replace_campaigns(self, campaigns: Iterable, updated_by: str = None) -> Configuration:
        """Replace the campaign list, keeping the given order."""
        return self.update_configuration({'campaigns': list(campaigns)}, updated_by=updated_by)

    def _replace_campaigns(self, model: ReferralConfiguration, campaigns: Iterable[Campaign]) -> None:
        model.campaigns = [
            ReferralCampaign(
                position=position,
                name=campaign.name,
                description=campaign.description,
                start_date=campaign.start_date,
                end_date=campaign.end_date,
                multiplier=str(campaign.multiplier),
                enabled=campaign.enabled,
                target_tenants=sorted(campaign.target_tenants),
                min_purchase=str(campaign.conditions.min_purchase),
                user_types=sorted(campaign.conditions.user_types),
            )
            for position, campaign in enumerate(campaigns)
        ]

    def upsert_tenant_override(
        self,
        tenant_id: str,
        tenant_name: Optional[str],
        owner_id: Optional[str],
        override_data: Optional[Dict[str, Any]]
    ) -> TenantOverride:
        """
        Create or replace the override for one tenant (last write wins).

        Every block is rewritten on each call; a block left out of
        override_data is stored with schema defaults.

        Raises:
            InvalidConfigurationError: override_data is invalid
        """
        if override_data is not None and not isinstance(override_data, dict):
            raise InvalidConfigurationError('Override data must be an object')

        payload = {key: value for key, value in (override_data or {}).items() if key in OVERRIDE_FIELDS}
        payload.update(tenant_id=tenant_id, tenant_name=tenant_name, owner_id=owner_id)
        snapshot = TenantOverride.from_dict(payload)

        model = self._require_model()

        for attempt in range(2):
            row = TenantReferralOverride.query.filter_by(
                configuration_id=model.id,
                tenant_id=snapshot.tenant_id
            ).first()
            if row is None:
                row = TenantReferralOverride(configuration_id=model.id, tenant_id=snapshot.tenant_id)
                db.session.add(row)

            row.tenant_name = snapshot.tenant_name
            row.owner_id = snapshot.owner_id
            row.signup_reward = snapshot.signup_reward.to_dict()
            row.first_purchase_reward = snapshot.first_purchase_reward.to_dict()
            row.milestone_rewards = [m.to_dict() for m in snapshot.milestone_rewards]
            row.settings = snapshot.settings.to_dict()

            try:
                db.session.commit()
                break
            except IntegrityError:
                # Concurrent insert for the same tenant; retry as an update
                db.session.rollback()
                if attempt:
                    raise

        logger.info('Referral override for tenant %s saved by %s', snapshot.tenant_id, owner_id)
        return snapshot
