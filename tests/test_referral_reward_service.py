"""
Tests for ReferralRewardService.

Covers computing rewards against the stored configuration and awarding
referral events through the accrual ledger.
"""
import pytest
from datetime import datetime
from decimal import Decimal

from app.models import ReferralAccrual
from app.services.referral_reward_service import ReferralRewardService
from app.utils.clock import FixedClock
from app.utils.exceptions import ConfigurationNotFoundError, InvalidEventTypeError, ValidationError
from app.services.referral_config_store import ReferralConfigStore
from app.services.referral_rewards import Configuration


@pytest.fixture
def seeded_store(store):
    """Store with a tenant override and a June campaign."""
    store.update_configuration({
        'signup_reward': {'referrer_points': 150, 'referred_points': 75},
        'milestone_rewards': [
            {'milestone': 'first_booking', 'referrer_points': 100, 'referred_points': 50},
            {'milestone': 'five_visits', 'enabled': False},
        ],
        'campaigns': [{
            'name': 'Summer Glow',
            'start_date': '2026-06-01T00:00:00',
            'end_date': '2026-06-30T23:59:59',
            'multiplier': 1.5,
            'conditions': {'min_purchase': 50},
        }],
    })
    store.upsert_tenant_override('spa-42', 'Downtown Spa', 'owner-1', {
        'first_purchase_reward': {'referrer_points': 600, 'referred_points': 300},
    })
    return store


@pytest.fixture
def service(seeded_store, clock):
    """Service pinned to mid-June 2026."""
    return ReferralRewardService(config_store=seeded_store, clock=clock)


class TestComputeReferralReward:
    """Tests for ReferralRewardService.compute_referral_reward()."""

    def test_uses_stored_configuration(self, app, service):
        """Override, tier and live campaign all apply."""
        result = service.compute_referral_reward('first_purchase', 'spa-42', 'platinum', 100)

        assert result.referrer_points == 1800
        assert result.referred_points == 900
        assert result.active_campaign.name == 'Summer Glow'

    def test_clock_decides_campaign(self, app, seeded_store):
        """Outside the campaign window no campaign applies."""
        service = ReferralRewardService(config_store=seeded_store, clock=FixedClock(datetime(2026, 7, 1)))

        result = service.compute_referral_reward('first_purchase', 'spa-42', 'platinum', 100)

        assert result.active_campaign is None
        assert result.referrer_points == 1200

    def test_default_tier_from_app_config(self, app, service):
        """A missing tier uses REFERRAL_DEFAULT_TIER."""
        app.config['REFERRAL_DEFAULT_TIER'] = 'gold'

        result = service.compute_referral_reward('signup', None, None)

        assert result.applied_multipliers.tier == Decimal('1.5')

    def test_explicit_default_tier(self, app, seeded_store, clock):
        """A default tier given to the service wins over app config."""
        service = ReferralRewardService(config_store=seeded_store, clock=clock, default_tier='platinum')

        result = service.compute_referral_reward('signup', None, None)

        assert result.applied_multipliers.tier == Decimal('2.0')

    def test_invalid_event_raises_before_loading(self, app, clock):
        """Bad event types fail even when no configuration exists."""
        service = ReferralRewardService(config_store=ReferralConfigStore(auto_provision=False), clock=clock)

        with pytest.raises(InvalidEventTypeError):
            service.compute_referral_reward('refund', None, 'gold')

    def test_missing_configuration_raises(self, app, clock):
        """Without a configuration and provisioning the call fails closed."""
        service = ReferralRewardService(config_store=ReferralConfigStore(auto_provision=False), clock=clock)

        with pytest.raises(ConfigurationNotFoundError):
            service.compute_referral_reward('signup', None, 'gold')


class TestAwardReferralEvent:
    """Tests for ReferralRewardService.award_referral_event()."""

    def test_award_records_accrual(self, app, service):
        """A first award credits both users."""
        result = service.award_referral_event('signup', 'spa-7', 'u-1', 'u-2', 'gold')

        assert result['success'] is True
        assert result['applied'] is True
        assert result['reward']['referrer_points'] == 225
        assert 'reason' not in result
        accrual = ReferralAccrual.query.filter_by(event_id=result['event_id']).one()
        assert accrual.referrer_points == 225
        assert accrual.referred_points == 113
        assert accrual.tenant_id == 'spa-7'

    def test_duplicate_award_is_noop(self, app, service):
        """Re-delivering the same event reports a duplicate and credits nothing."""
        first = service.award_referral_event({'milestone': 'first_booking'}, 'spa-7', 'u-1', 'u-2', 'bronze')
        second = service.award_referral_event({'milestone': 'first_booking'}, 'spa-7', 'u-1', 'u-2', 'bronze')

        assert first['applied'] is True
        assert second['success'] is True
        assert second['applied'] is False
        assert second['reason'] == 'duplicate'
        assert second['event_id'] == first['event_id']
        assert service.ledger.get_points_balance('u-1') == 100

    def test_different_milestones_both_credited(self, app, service):
        """Each milestone is its own event."""
        service.award_referral_event('signup', None, 'u-1', 'u-2', 'bronze')
        service.award_referral_event({'milestone': 'first_booking'}, None, 'u-1', 'u-2', 'bronze')

        assert service.ledger.get_points_balance('u-1') == 250

    def test_zero_reward_not_recorded(self, app, service):
        """Disabled or unknown milestones are reported but not recorded."""
        result = service.award_referral_event({'milestone': 'five_visits'}, None, 'u-1', 'u-2', 'gold')

        assert result['success'] is True
        assert result['applied'] is False
        assert result['reason'] == 'no_reward'
        assert ReferralAccrual.query.count() == 0

    def test_self_referral_rejected(self, app, service):
        """Users cannot refer themselves unless settings allow it."""
        result = service.award_referral_event('signup', None, 'u-1', 'u-1', 'gold')

        assert result == {'success': False, 'error': 'Cannot refer yourself'}
        assert ReferralAccrual.query.count() == 0

    def test_self_referral_allowed_by_tenant_settings(self, app, service, seeded_store):
        """A tenant override can allow self-referral."""
        seeded_store.upsert_tenant_override('spa-9', 'Test Spa', 'owner-1', {
            'settings': {'allow_self_referral': True},
        })

        result = service.award_referral_event('signup', 'spa-9', 'u-1', 'u-1', 'bronze')

        assert result['applied'] is True

    def test_missing_user_ids_rejected(self, app, service):
        """Both parties are required."""
        with pytest.raises(ValidationError):
            service.award_referral_event('signup', None, 'u-1', '', 'gold')

    def test_accrual_records_campaign(self, app, service):
        """The applied campaign is written to the ledger row."""
        result = service.award_referral_event('first_purchase', 'spa-42', 'u-1', 'u-2', 'platinum', 100)

        accrual = ReferralAccrual.query.filter_by(event_id=result['event_id']).one()
        assert accrual.campaign_name == 'Summer Glow'
        assert accrual.points_applied == 2700

    def test_manual_approval_holds_award(self, app, service, seeded_store):
        """With auto_approve off for the tenant nothing is credited."""
        seeded_store.upsert_tenant_override('spa-9', 'Test Spa', 'owner-1', {
            'signup_reward': {'referrer_points': 150, 'referred_points': 75},
            'settings': {'auto_approve': False},
        })

        result = service.award_referral_event('signup', 'spa-9', 'u-1', 'u-2', 'bronze')

        assert result['success'] is True
        assert result['applied'] is False
        assert result['reason'] == 'pending_approval'
        assert result['reward']['referrer_points'] == 150
        assert ReferralAccrual.query.count() == 0

    def test_auto_approve_only_affects_its_tenant(self, app, service, seeded_store):
        """Other tenants keep crediting immediately."""
        seeded_store.upsert_tenant_override('spa-9', 'Test Spa', 'owner-1', {
            'settings': {'auto_approve': False},
        })

        result = service.award_referral_event('signup', 'spa-7', 'u-1', 'u-2', 'bronze')

        assert result['applied'] is True

    def test_inactive_snapshot_rejected(self, app, clock):
        """An inactive configuration is refused even if the store returns it."""
        class InactiveStore:
            def get_active_configuration(self):
                return Configuration(is_active=False)

        service = ReferralRewardService(config_store=InactiveStore(), clock=clock)

        with pytest.raises(ConfigurationNotFoundError):
            service.award_referral_event('signup', None, 'u-1', 'u-2', 'gold')
        assert ReferralAccrual.query.count() == 0
