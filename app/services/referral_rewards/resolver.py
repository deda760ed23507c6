"""
Tenant configuration resolution.

A tenant override replaces the signup, first-purchase, milestone and
settings blocks as whole units. There is no per-key merge with the global
values: a tenant that overrides signup_reward gets exactly its own
signup_reward, even for keys it left at schema defaults.

Tier multipliers are global and always come from the configuration.
"""
import logging
from typing import Optional

from .types import Configuration, EffectiveConfig, normalize_tenant_id

logger = logging.getLogger(__name__)


def resolve_config(config: Configuration, tenant_id: Optional[str]) -> EffectiveConfig:
    """
    Effective reward rules for a tenant.

    Args:
        config: Active configuration snapshot
        tenant_id: Tenant identifier, or None for an un-tenanted event

    Returns:
        EffectiveConfig with override_applied telling which source was used
    """
    tenant_id = normalize_tenant_id(tenant_id)
    override = config.get_tenant_override(tenant_id)

    if override is None:
        logger.debug('No referral override for tenant %s, using global configuration', tenant_id)
        return EffectiveConfig(
            tenant_id=tenant_id,
            tenant_name=None,
            signup_reward=config.signup_reward,
            first_purchase_reward=config.first_purchase_reward,
            milestone_rewards=config.milestone_rewards,
            settings=config.settings,
            tier_multipliers=config.tier_multipliers,
            override_applied=False,
        )

    logger.debug('Using referral override for tenant %s (%s)', override.tenant_id, override.tenant_name)
    return EffectiveConfig(
        tenant_id=override.tenant_id,
        tenant_name=override.tenant_name,
        signup_reward=override.signup_reward,
        first_purchase_reward=override.first_purchase_reward,
        milestone_rewards=override.milestone_rewards,
        settings=override.settings,
        tier_multipliers=config.tier_multipliers,
        override_applied=True,
    )
