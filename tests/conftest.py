"""
Shared fixtures for the referral engine tests.
"""
import pytest
from datetime import datetime

from app import create_app
from app.extensions import db
from app.services.referral_config_store import ReferralConfigStore
from app.services.referral_rewards import Campaign, Configuration, TenantOverride, RewardRule
from app.utils.clock import FixedClock


NOW = datetime(2026, 6, 15, 12, 0, 0)


@pytest.fixture
def app():
    """Create test application."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Test client."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """CLI runner."""
    return app.test_cli_runner()


@pytest.fixture
def clock():
    """Clock pinned to mid-June 2026."""
    return FixedClock(NOW)


@pytest.fixture
def store(app):
    """Config store that provisions the default configuration."""
    return ReferralConfigStore(auto_provision=True)


@pytest.fixture
def summer_campaign():
    """Global 1.5x campaign live at NOW, requires a 50.00 purchase."""
    return Campaign.from_dict({
        'name': 'Summer Glow',
        'start_date': '2026-06-01T00:00:00',
        'end_date': '2026-06-30T23:59:59',
        'multiplier': 1.5,
        'conditions': {'min_purchase': 50},
    })


@pytest.fixture
def configuration(summer_campaign):
    """
    Global signup 150/75 and a first_booking milestone, one tenant override
    with first purchase 600/300, one global campaign.
    """
    return Configuration(
        signup_reward=RewardRule(enabled=True, referrer_points=150, referred_points=75),
        milestone_rewards=({'milestone': 'first_booking', 'referrer_points': 100, 'referred_points': 50},),
        campaigns=(summer_campaign,),
        tenant_overrides=(
            TenantOverride(
                tenant_id='spa-42',
                tenant_name='Downtown Spa',
                first_purchase_reward=RewardRule(enabled=True, referrer_points=600, referred_points=300),
            ),
        ),
    )
