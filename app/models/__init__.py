"""
Database models for the referral reward engine.
Referral configuration, tenant overrides, campaigns and the accrual ledger.
"""
from .referral_config import (
    ReferralConfiguration,
    TenantReferralOverride,
    ReferralCampaign,
)
from .referral_accrual import ReferralAccrual

__all__ = [
    # Configuration
    'ReferralConfiguration',
    'TenantReferralOverride',
    'ReferralCampaign',
    # Ledger
    'ReferralAccrual',
]
