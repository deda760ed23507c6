"""
Referral reward calculation.

    points = round_half_up(base_points × tier_multiplier × campaign_multiplier)

- base_points comes from the event's reward block; a disabled block or an
  unknown/disabled milestone gives (0, 0) without raising
- tier_multiplier is looked up in the global tier table, 1.0 if unknown
- campaign_multiplier is the matched campaign's multiplier when its
  conditions hold for this event, otherwise 1.0
- multipliers always compose by multiplication

Rounding is ROUND_HALF_UP to whole points (2.5 -> 3), applied once to the
final product so intermediate values are never truncated.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

from ...utils.exceptions import InvalidRewardInputError
from .events import (
    ReferralEvent,
    SignupEvent,
    FirstPurchaseEvent,
    MilestoneEvent,
    parse_event_type,
    event_label,
)
from .types import (
    ONE,
    Campaign,
    EffectiveConfig,
    AppliedMultipliers,
    ResolvedTenant,
    RewardResult,
    USER_TYPES,
    to_decimal,
)

logger = logging.getLogger(__name__)

ZERO_REWARD = (0, 0)

DEFAULT_TIER = 'bronze'


def round_points(value: Decimal) -> int:
    """Round a point amount half-up to an integer."""
    return int(value.quantize(ONE, rounding=ROUND_HALF_UP))


def normalize_purchase_amount(purchase_amount) -> Decimal:
    """None means no purchase; negatives and non-numbers are caller bugs."""
    if purchase_amount is None:
        return Decimal('0')
    amount = to_decimal(purchase_amount, 'purchase_amount', InvalidRewardInputError)
    if amount < 0:
        raise InvalidRewardInputError(
            f'purchase_amount must be >= 0, got {purchase_amount!r}', 'purchase_amount'
        )
    return amount


def _normalize_user_type(user_type: Optional[str]) -> Optional[str]:
    if user_type is None:
        return None
    if not isinstance(user_type, str) or user_type.strip().lower() not in USER_TYPES:
        raise InvalidRewardInputError(f'Unknown user_type {user_type!r}', 'user_type')
    return user_type.strip().lower()


def select_base_reward(event: ReferralEvent, effective_config: EffectiveConfig) -> Tuple[int, int]:
    """(referrer_points, referred_points) before multipliers."""
    if isinstance(event, SignupEvent):
        rule = effective_config.signup_reward
    elif isinstance(event, FirstPurchaseEvent):
        rule = effective_config.first_purchase_reward
    elif isinstance(event, MilestoneEvent):
        rule = effective_config.find_milestone(event.milestone)
        if rule is None:
            logger.debug(
                'Milestone %r not configured or disabled for tenant %s',
                event.milestone, effective_config.tenant_id
            )
            return ZERO_REWARD
    else:
        raise InvalidRewardInputError(f'Unsupported event {event!r}', 'event_type')

    if not rule.enabled:
        return ZERO_REWARD
    return rule.referrer_points, rule.referred_points


def campaign_conditions_met(
    campaign: Campaign,
    purchase_amount: Decimal,
    user_type: Optional[str] = None
) -> bool:
    """Second-phase check of a matched campaign against the event itself."""
    conditions = campaign.conditions
    if conditions.min_purchase > purchase_amount:
        return False
    return conditions.allows_user_type(user_type)


def calculate_reward(
    event_type,
    effective_config: EffectiveConfig,
    matched_campaign: Optional[Campaign],
    user_tier: Optional[str],
    purchase_amount=0,
    user_type: Optional[str] = None
) -> RewardResult:
    """
    Compute referrer and referred points for one event.

    Args:
        event_type: Event object, 'signup', 'first_purchase' or {'milestone': key}
        effective_config: Output of resolve_config()
        matched_campaign: Output of match_campaign(), may be None
        user_tier: Tier name (bronze/gold/platinum/...); None means bronze,
            unknown tiers count as 1.0
        purchase_amount: Purchase value used for campaign min_purchase
        user_type: Optional 'new'/'existing' checked against campaign user_types

    Returns:
        RewardResult

    Raises:
        InvalidEventTypeError: Unrecognized event type
        InvalidRewardInputError: Negative/non-numeric purchase amount or bad user_type
    """
    event = parse_event_type(event_type)
    amount = normalize_purchase_amount(purchase_amount)
    user_type = _normalize_user_type(user_type)

    referrer_base, referred_base = select_base_reward(event, effective_config)
    tier_multiplier = effective_config.tier_multiplier(user_tier or DEFAULT_TIER)

    campaign_applies = (
        matched_campaign is not None
        and campaign_conditions_met(matched_campaign, amount, user_type)
    )
    if matched_campaign is not None and not campaign_applies:
        logger.debug(
            'Campaign %r matched but its conditions are not met (purchase=%s, user_type=%s)',
            matched_campaign.name, amount, user_type
        )
    campaign_multiplier = matched_campaign.multiplier if campaign_applies else ONE
    final_multiplier = tier_multiplier * campaign_multiplier

    result = RewardResult(
        event_type=event.tag,
        milestone=event.milestone_key,
        referrer_points=round_points(referrer_base * final_multiplier),
        referred_points=round_points(referred_base * final_multiplier),
        applied_multipliers=AppliedMultipliers(
            tier=tier_multiplier,
            campaign=campaign_multiplier,
            final=final_multiplier,
        ),
        resolved_tenant=ResolvedTenant(
            tenant_id=effective_config.tenant_id,
            tenant_name=effective_config.tenant_name,
        ),
        active_campaign=matched_campaign if campaign_applies else None,
        matched_campaign=matched_campaign,
        override_applied=effective_config.override_applied,
    )
    logger.debug(
        'Referral reward %s: referrer=%d referred=%d (x%s)',
        event_label(event), result.referrer_points, result.referred_points, final_multiplier
    )
    return result
