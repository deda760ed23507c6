"""
Referral Reward Service.

Call boundary for the referral reward engine. Loads the active
configuration once per call, reads the injected clock, runs the pure
resolve -> match -> calculate pipeline and, for awards, records the
accrual exactly once.

Usage:
    service = ReferralRewardService()

    # Preview only
    result = service.compute_referral_reward('signup', 'spa-42', 'gold', 0)

    # Compute and credit
    outcome = service.award_referral_event(
        {'milestone': 'first_booking'}, 'spa-42',
        referrer_user_id='u-1', referred_user_id='u-2', user_tier='gold'
    )
"""
import logging
from typing import Optional, Dict, Any

from flask import current_app

from ..utils.clock import Clock, SystemClock
from ..utils.exceptions import ValidationError
from .accrual_ledger import AccrualLedger, AccrualRecord, derive_event_id
from .referral_config_store import ReferralConfigStore
from .referral_rewards import (
    RewardResult,
    compute_reward,
    evaluate_reward,
    event_label,
    parse_event_type,
)
from .referral_rewards.types import normalize_tenant_id

logger = logging.getLogger(__name__)


class ReferralRewardService:
    """
    Computes and awards referral points.

    Args:
        config_store: Source of the active configuration
        ledger: Idempotent accrual ledger
        clock: Time source for campaign matching
        default_tier: Tier used when a caller sends none
    """

    def __init__(
        self,
        config_store: ReferralConfigStore = None,
        ledger: AccrualLedger = None,
        clock: Clock = None,
        default_tier: str = None
    ):
        self.clock = clock or SystemClock()
        self.config_store = config_store or ReferralConfigStore()
        self.ledger = ledger or AccrualLedger(clock=self.clock)
        self._default_tier = default_tier

    @property
    def default_tier(self) -> str:
        if self._default_tier:
            return self._default_tier
        return current_app.config.get('REFERRAL_DEFAULT_TIER', 'bronze')

    # ==================== Computation ====================

    def compute_referral_reward(
        self,
        event_type,
        tenant_id: Optional[str],
        user_tier: Optional[str],
        purchase_amount=0,
        user_type: Optional[str] = None
    ) -> RewardResult:
        """
        Points the referrer and referred user would receive for an event.

        Args:
            event_type: 'signup', 'first_purchase' or {'milestone': key}
            tenant_id: Tenant (spa location) the event belongs to, or None
            user_tier: Referrer's tier; None uses the default tier
            purchase_amount: Purchase value for campaign conditions
            user_type: Optional 'new'/'existing' for campaign user_types

        Raises:
            ConfigurationNotFoundError: No active configuration
            InvalidEventTypeError / InvalidRewardInputError: Bad input
        """
        event = parse_event_type(event_type)
        configuration = self.config_store.get_active_configuration()
        return compute_reward(
            configuration,
            event,
            tenant_id,
            user_tier or self.default_tier,
            purchase_amount,
            self.clock.now(),
            user_type=user_type,
        )

    # ==================== Award ====================

    def award_referral_event(
        self,
        event_type,
        tenant_id: Optional[str],
        referrer_user_id: str,
        referred_user_id: str,
        user_tier: Optional[str] = None,
        purchase_amount=0,
        user_type: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Compute the reward for an event and credit it at most once.

        Returns:
            Dict with success flag, whether points were applied, the
            reason when they were not, the event id and the reward.
            A duplicate delivery returns success with applied=False, as
            does a tenant whose settings turn auto_approve off.
        """
        event = parse_event_type(event_type)
        if not referrer_user_id or not referred_user_id:
            raise ValidationError('referrer_user_id and referred_user_id are required', 'user_id')

        tenant_id = normalize_tenant_id(tenant_id)
        configuration = self.config_store.get_active_configuration()
        effective, reward = evaluate_reward(
            configuration,
            event,
            tenant_id,
            user_tier or self.default_tier,
            purchase_amount,
            self.clock.now(),
            user_type=user_type,
        )

        if str(referrer_user_id) == str(referred_user_id) and not effective.settings.allow_self_referral:
            return {'success': False, 'error': 'Cannot refer yourself'}

        event_id = derive_event_id(tenant_id, event.tag, referred_user_id, event.milestone_key)

        if reward.total_points == 0:
            logger.info('No referral reward configured for %s (tenant %s)', event_label(event), tenant_id)
            return {
                'success': True,
                'applied': False,
                'reason': 'no_reward',
                'event_id': event_id,
                'reward': reward.to_dict(),
            }

        if not effective.settings.auto_approve:
            # Tenant approves referrals by hand; nothing is credited here
            logger.info('Referral %s for tenant %s awaits approval', event_id, tenant_id)
            return {
                'success': True,
                'applied': False,
                'reason': 'pending_approval',
                'event_id': event_id,
                'reward': reward.to_dict(),
            }

        outcome = self.ledger.try_record_accrual(
            event_id,
            AccrualRecord(
                tenant_id=tenant_id,
                event_type=event.tag,
                milestone_key=event.milestone_key,
                referrer_user_id=str(referrer_user_id),
                referred_user_id=str(referred_user_id),
                referrer_points=reward.referrer_points,
                referred_points=reward.referred_points,
                final_multiplier=reward.applied_multipliers.final,
                campaign_name=reward.active_campaign.name if reward.active_campaign else None,
            )
        )

        result = {
            'success': True,
            'reward': reward.to_dict(),
            **outcome.to_dict(),
        }
        return result
