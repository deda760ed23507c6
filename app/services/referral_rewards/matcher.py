"""
Campaign matching.

Picks at most one campaign for a (tenant, instant) pair using only the
time window and tenant targeting. Purchase and user-type conditions are
checked later by the calculator, once the event values are known.

Precedence among several live campaigns:
    1. tenant-targeted campaigns before global ones
    2. higher multiplier
    3. earlier start_date
    4. earlier position in the configured list
"""
import logging
from datetime import datetime
from typing import Optional, Sequence

from ...utils.clock import as_naive_utc
from .types import Campaign, normalize_tenant_id

logger = logging.getLogger(__name__)


def is_campaign_eligible(campaign: Campaign, tenant_id: Optional[str], now: datetime) -> bool:
    """Live at ``now`` and targeting ``tenant_id`` (or every tenant)."""
    return campaign.is_live(now) and campaign.targets(normalize_tenant_id(tenant_id))


def _precedence(position: int, campaign: Campaign):
    return (
        0 if campaign.is_tenant_targeted else 1,
        -campaign.multiplier,
        campaign.start_date,
        position,
    )


def match_campaign(
    campaigns: Sequence[Campaign],
    tenant_id: Optional[str],
    now: datetime
) -> Optional[Campaign]:
    """
    Select the single applicable campaign.

    Args:
        campaigns: Campaigns in configured order
        tenant_id: Tenant identifier, or None (only global campaigns match)
        now: Injected current time

    Returns:
        The winning Campaign, or None when nothing is live for the tenant
    """
    now = as_naive_utc(now)
    tenant_id = normalize_tenant_id(tenant_id)

    eligible = [
        (position, campaign)
        for position, campaign in enumerate(campaigns)
        if is_campaign_eligible(campaign, tenant_id, now)
    ]
    if not eligible:
        logger.debug('No live campaign for tenant %s at %s', tenant_id, now.isoformat())
        return None

    position, winner = min(eligible, key=lambda item: _precedence(*item))
    if len(eligible) > 1:
        logger.debug(
            'Campaign %r chosen over %d other live campaigns for tenant %s',
            winner.name, len(eligible) - 1, tenant_id
        )
    return winner
