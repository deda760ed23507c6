"""
Tests for the referral configuration value types.

Covers construction defaults, structural validation and the
normalization applied to stored JSON.
"""
import pytest
from datetime import datetime, timezone
from decimal import Decimal

from app.services.referral_rewards import (
    Campaign,
    CampaignConditions,
    Configuration,
    MilestoneReward,
    ReferralSettings,
    RewardRule,
    TenantOverride,
)
from app.utils.exceptions import InvalidConfigurationError


class TestConfigurationDefaults:
    """Tests for the schema defaults."""

    def test_default_configuration(self):
        """An empty configuration carries the documented defaults."""
        config = Configuration()

        assert config.name == 'default'
        assert config.is_active is True
        assert config.signup_reward.referrer_points == 200
        assert config.signup_reward.referred_points == 100
        assert config.first_purchase_reward.referrer_points == 500
        assert config.first_purchase_reward.referred_points == 250
        assert dict(config.tier_multipliers) == {
            'bronze': Decimal('1.0'),
            'gold': Decimal('1.5'),
            'platinum': Decimal('2.0'),
        }
        assert config.settings.code_expiry_days == 30
        assert config.settings.allow_self_referral is False

    def test_milestone_defaults(self):
        """Milestone rewards default to 100/50 points."""
        milestone = MilestoneReward.from_dict({'milestone': 'first_booking'})

        assert milestone.referrer_points == 100
        assert milestone.referred_points == 50
        assert milestone.enabled is True

    def test_reward_rule_from_partial_dict(self):
        """Missing keys in a stored reward block come from the default rule."""
        rule = RewardRule.from_dict({'referrer_points': 300}, RewardRule(True, 200, 100))

        assert rule.referrer_points == 300
        assert rule.referred_points == 100


class TestConfigurationValidation:
    """Tests for structural validation."""

    def test_duplicate_tenant_override_rejected(self):
        """Two overrides for the same tenant are invalid."""
        with pytest.raises(InvalidConfigurationError):
            Configuration(tenant_overrides=(
                TenantOverride(tenant_id='spa-1'),
                TenantOverride(tenant_id=' spa-1 '),
            ))

    def test_duplicate_milestone_rejected(self):
        """Milestone keys are unique within a block."""
        with pytest.raises(InvalidConfigurationError):
            Configuration(milestone_rewards=(
                {'milestone': 'first_booking'},
                {'milestone': 'first_booking', 'referrer_points': 10},
            ))

    def test_negative_points_rejected(self):
        """Point amounts cannot be negative."""
        with pytest.raises(InvalidConfigurationError):
            RewardRule(enabled=True, referrer_points=-1, referred_points=0)

    def test_fractional_points_rejected(self):
        """Point amounts are whole numbers."""
        with pytest.raises(InvalidConfigurationError):
            RewardRule(enabled=True, referrer_points=10.5, referred_points=0)

    @pytest.mark.parametrize('value', [0, -1, 'abc', None, True])
    def test_invalid_tier_multiplier_rejected(self, value):
        """Tier multipliers must be positive numbers."""
        with pytest.raises(InvalidConfigurationError):
            Configuration(tier_multipliers={'gold': value})

    def test_tier_names_lowercased(self):
        """Tier keys are case-insensitive."""
        config = Configuration(tier_multipliers={'Gold': 1.5})

        assert config.tier_multipliers['gold'] == Decimal('1.5')

    def test_tier_multipliers_read_only(self):
        """The tier table cannot be mutated after construction."""
        config = Configuration()

        with pytest.raises(TypeError):
            config.tier_multipliers['gold'] = Decimal('9')

    def test_unknown_user_type_rejected(self):
        """Campaign user types are limited to new, existing and all."""
        with pytest.raises(InvalidConfigurationError):
            CampaignConditions(user_types=frozenset({'vip'}))

    def test_settings_ignore_unknown_keys(self):
        """Unknown settings keys are dropped."""
        settings = ReferralSettings.from_dict({'code_length': 8, 'legacy_flag': True})

        assert settings.code_length == 8
        assert not hasattr(settings, 'legacy_flag')

    @pytest.mark.parametrize('value,expected', [(True, True), (False, False), ('true', True), ('False', False)])
    def test_boolean_flags_parsed(self, value, expected):
        """Booleans and true/false strings are accepted."""
        assert RewardRule(enabled=value).enabled is expected
        assert ReferralSettings(auto_approve=value).auto_approve is expected

    @pytest.mark.parametrize('value', ['no', '', 0, 1, None, ['true']])
    def test_non_boolean_flags_rejected(self, value):
        """Anything else is a configuration error."""
        with pytest.raises(InvalidConfigurationError):
            RewardRule(enabled=value)
        with pytest.raises(InvalidConfigurationError):
            MilestoneReward(milestone='first_booking', enabled=value)
        with pytest.raises(InvalidConfigurationError):
            ReferralSettings.from_dict({'allow_self_referral': value})


class TestCampaign:
    """Tests for Campaign construction and liveness."""

    def test_end_before_start_rejected(self):
        """A campaign cannot end before it starts."""
        with pytest.raises(InvalidConfigurationError):
            Campaign(name='Broken', start_date=datetime(2026, 7, 1), end_date=datetime(2026, 6, 1))

    def test_non_positive_multiplier_rejected(self):
        """Campaign multipliers must be positive."""
        with pytest.raises(InvalidConfigurationError):
            Campaign(
                name='Zero',
                start_date=datetime(2026, 6, 1),
                end_date=datetime(2026, 6, 30),
                multiplier=0
            )

    def test_window_inclusive_on_both_ends(self):
        """A campaign is live at exactly its start and end instants."""
        campaign = Campaign(name='Weekend', start_date=datetime(2026, 6, 6), end_date=datetime(2026, 6, 7))

        assert campaign.is_live(datetime(2026, 6, 6)) is True
        assert campaign.is_live(datetime(2026, 6, 7)) is True
        assert campaign.is_live(datetime(2026, 6, 7, 0, 0, 1)) is False

    def test_disabled_campaign_never_live(self):
        """Disabled campaigns are ignored regardless of dates."""
        campaign = Campaign(
            name='Paused',
            start_date=datetime(2026, 6, 1),
            end_date=datetime(2026, 6, 30),
            enabled=False
        )

        assert campaign.is_live(datetime(2026, 6, 15)) is False

    def test_iso_dates_parsed_to_naive_utc(self):
        """ISO strings with offsets are stored as naive UTC."""
        campaign = Campaign.from_dict({
            'name': 'Offset',
            'start_date': '2026-06-01T02:00:00+02:00',
            'end_date': '2026-06-30T00:00:00Z',
        })

        assert campaign.start_date == datetime(2026, 6, 1, 0, 0)
        assert campaign.start_date.tzinfo is None

    def test_aware_now_compared_as_utc(self):
        """An aware 'now' is converted before comparing."""
        campaign = Campaign(name='June', start_date=datetime(2026, 6, 1), end_date=datetime(2026, 6, 30))

        assert campaign.is_live(datetime(2026, 6, 15, tzinfo=timezone.utc)) is True

    def test_float_multiplier_kept_exact(self):
        """A float multiplier becomes its decimal literal."""
        campaign = Campaign(
            name='Exact',
            start_date=datetime(2026, 6, 1),
            end_date=datetime(2026, 6, 30),
            multiplier=1.1
        )

        assert campaign.multiplier == Decimal('1.1')


class TestSerialization:
    """Tests for to_dict / from_dict."""

    def test_configuration_from_its_own_dict(self, configuration):
        """A configuration rebuilt from to_dict() is equal to the original."""
        assert Configuration.from_dict(configuration.to_dict()) == configuration

    def test_override_missing_blocks_take_schema_defaults(self):
        """An override without a signup block gets the schema default, not the global one."""
        override = TenantOverride.from_dict({'tenant_id': 'spa-9'})

        assert override.signup_reward.referrer_points == 200
        assert override.milestone_rewards == ()
