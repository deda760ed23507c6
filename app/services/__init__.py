"""
Business logic services for the referral reward engine.
"""
from .referral_config_store import ReferralConfigStore
from .accrual_ledger import AccrualLedger, AccrualRecord, AccrualOutcome, derive_event_id
from .referral_reward_service import ReferralRewardService

__all__ = [
    'ReferralConfigStore',
    'AccrualLedger',
    'AccrualRecord',
    'AccrualOutcome',
    'derive_event_id',
    'ReferralRewardService',
]
