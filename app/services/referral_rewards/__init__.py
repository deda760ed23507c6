"""
Referral reward computation engine.

Pure functions over immutable configuration snapshots:

    effective = resolve_config(configuration, tenant_id)
    campaign = match_campaign(configuration.campaigns, tenant_id, clock.now())
    result = calculate_reward(event, effective, campaign, user_tier, purchase_amount)

compute_reward() runs the three steps together; evaluate_reward() also
returns the effective config. No I/O happens here;
loading configuration and recording accruals live in the services that
call this package.
"""
from .types import (
    USER_TYPES,
    DEFAULT_TIER_MULTIPLIERS,
    RewardRule,
    MilestoneReward,
    ReferralSettings,
    CampaignConditions,
    Campaign,
    TenantOverride,
    Configuration,
    EffectiveConfig,
    AppliedMultipliers,
    ResolvedTenant,
    RewardResult,
)
from .events import (
    SignupEvent,
    FirstPurchaseEvent,
    MilestoneEvent,
    parse_event_type,
    event_label,
)
from .resolver import resolve_config
from .matcher import match_campaign, is_campaign_eligible
from .calculator import calculate_reward, round_points, campaign_conditions_met
from .engine import compute_reward, evaluate_reward

__all__ = [
    'USER_TYPES',
    'DEFAULT_TIER_MULTIPLIERS',
    'RewardRule',
    'MilestoneReward',
    'ReferralSettings',
    'CampaignConditions',
    'Campaign',
    'TenantOverride',
    'Configuration',
    'EffectiveConfig',
    'AppliedMultipliers',
    'ResolvedTenant',
    'RewardResult',
    'SignupEvent',
    'FirstPurchaseEvent',
    'MilestoneEvent',
    'parse_event_type',
    'event_label',
    'resolve_config',
    'match_campaign',
    'is_campaign_eligible',
    'calculate_reward',
    'round_points',
    'campaign_conditions_met',
    'compute_reward',
    'evaluate_reward',
]
