"""
The resolve -> match -> calculate pipeline over one configuration snapshot.
"""
from datetime import datetime
from typing import Optional, Tuple

from ...utils.exceptions import ConfigurationNotFoundError
from .calculator import calculate_reward
from .events import parse_event_type
from .matcher import match_campaign
from .resolver import resolve_config
from .types import Configuration, EffectiveConfig, RewardResult


def evaluate_reward(
    configuration: Optional[Configuration],
    event_type,
    tenant_id: Optional[str],
    user_tier: Optional[str],
    purchase_amount,
    now: datetime,
    user_type: Optional[str] = None
) -> Tuple[EffectiveConfig, RewardResult]:
    """
    Run the pipeline and keep the effective config alongside the result.

    Callers that need the tenant's settings (self-referral, approval)
    use this instead of repeating the steps.

    Raises:
        ConfigurationNotFoundError: configuration is missing or inactive
    """
    if configuration is None or not configuration.is_active:
        raise ConfigurationNotFoundError(configuration.name if configuration else 'default')

    event = parse_event_type(event_type)
    effective = resolve_config(configuration, tenant_id)
    campaign = match_campaign(configuration.campaigns, effective.tenant_id, now)
    result = calculate_reward(
        event,
        effective,
        campaign,
        user_tier,
        purchase_amount,
        user_type=user_type,
    )
    return effective, result


def compute_reward(
    configuration: Optional[Configuration],
    event_type,
    tenant_id: Optional[str],
    user_tier: Optional[str],
    purchase_amount,
    now: datetime,
    user_type: Optional[str] = None
) -> RewardResult:
    """
    Pure computation of a referral reward.

    Raises:
        ConfigurationNotFoundError: configuration is missing or inactive
    """
    _, result = evaluate_reward(
        configuration, event_type, tenant_id, user_tier, purchase_amount, now, user_type=user_type
    )
    return result
