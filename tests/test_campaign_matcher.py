"""
Tests for campaign matching and precedence.
"""
from datetime import datetime

from app.services.referral_rewards import Campaign, match_campaign, is_campaign_eligible


NOW = datetime(2026, 6, 15, 12, 0)


def make_campaign(name, multiplier=1.5, start=datetime(2026, 6, 1), end=datetime(2026, 6, 30), **kwargs):
    return Campaign(name=name, start_date=start, end_date=end, multiplier=multiplier, **kwargs)


class TestCampaignEligibility:
    """Tests for is_campaign_eligible()."""

    def test_global_campaign_matches_any_tenant(self):
        """A campaign without targets applies to every tenant and to no tenant."""
        campaign = make_campaign('Global')

        assert is_campaign_eligible(campaign, 'spa-1', NOW) is True
        assert is_campaign_eligible(campaign, None, NOW) is True

    def test_targeted_campaign_requires_listed_tenant(self):
        """A targeted campaign skips tenants it does not list."""
        campaign = make_campaign('Local', target_tenants=frozenset({'spa-1'}))

        assert is_campaign_eligible(campaign, 'spa-1', NOW) is True
        assert is_campaign_eligible(campaign, 'spa-2', NOW) is False
        assert is_campaign_eligible(campaign, None, NOW) is False

    def test_expired_campaign_not_eligible(self):
        """Campaigns outside their window are ignored."""
        campaign = make_campaign('May', start=datetime(2026, 5, 1), end=datetime(2026, 5, 31))

        assert is_campaign_eligible(campaign, 'spa-1', NOW) is False


class TestMatchCampaign:
    """Tests for match_campaign() precedence."""

    def test_no_campaigns(self):
        """No campaigns means no match."""
        assert match_campaign((), 'spa-1', NOW) is None

    def test_targeted_beats_global(self):
        """A tenant-targeted campaign wins over a global one with a higher multiplier."""
        global_campaign = make_campaign('Global', multiplier=3)
        local_campaign = make_campaign('Local', multiplier=1.2, target_tenants=frozenset({'spa-1'}))

        winner = match_campaign((global_campaign, local_campaign), 'spa-1', NOW)

        assert winner is local_campaign

    def test_higher_multiplier_wins(self):
        """Among equally targeted campaigns the higher multiplier wins."""
        low = make_campaign('Low', multiplier=1.5)
        high = make_campaign('High', multiplier=2)

        assert match_campaign((low, high), 'spa-1', NOW) is high

    def test_earlier_start_wins_on_equal_multiplier(self):
        """Equal multipliers fall back to the earlier start date."""
        later = make_campaign('Later', start=datetime(2026, 6, 10))
        earlier = make_campaign('Earlier', start=datetime(2026, 6, 2))

        assert match_campaign((later, earlier), 'spa-1', NOW) is earlier

    def test_storage_order_breaks_full_ties(self):
        """Identical precedence keys resolve to the first configured campaign."""
        first = make_campaign('First')
        second = make_campaign('Second')

        assert match_campaign((first, second), 'spa-1', NOW) is first
        assert match_campaign((second, first), 'spa-1', NOW) is second

    def test_deterministic_across_calls(self):
        """The same inputs always give the same winner."""
        campaigns = (
            make_campaign('A', multiplier=2),
            make_campaign('B', multiplier=2, start=datetime(2026, 6, 5)),
            make_campaign('C', multiplier=1.5, target_tenants=frozenset({'spa-9'})),
        )

        winners = {match_campaign(campaigns, 'spa-1', NOW).name for _ in range(5)}

        assert winners == {'A'}

    def test_targeted_campaign_for_other_tenant_ignored(self):
        """Untargeted tenants fall through to the global campaign."""
        local_campaign = make_campaign('Local', multiplier=5, target_tenants=frozenset({'spa-1'}))
        global_campaign = make_campaign('Global', multiplier=1.5)

        assert match_campaign((local_campaign, global_campaign), 'spa-2', NOW) is global_campaign

    def test_conditions_not_checked_at_match_time(self):
        """min_purchase is left to the calculator; the campaign still matches."""
        campaign = Campaign.from_dict({
            'name': 'Spend',
            'start_date': '2026-06-01T00:00:00',
            'end_date': '2026-06-30T00:00:00',
            'conditions': {'min_purchase': 1000},
        })

        assert match_campaign((campaign,), 'spa-1', NOW) is campaign
