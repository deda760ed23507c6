"""
CLI Commands for the referral reward engine.

# Create the default configuration (optionally from a JSON file)
flask referrals seed-config
flask referrals seed-config --from-file referral_config.json

# Preview a reward without crediting it
flask referrals preview --event signup --tenant-id spa-42 --tier gold --purchase-amount 100
flask referrals preview --event milestone:first_booking --tier platinum

# Referral points credited to a user
flask referrals balance u-123 --tenant-id spa-42
"""
import json

import click
from flask.cli import with_appcontext

from ..services.accrual_ledger import AccrualLedger
from ..services.referral_config_store import ReferralConfigStore
from ..services.referral_reward_service import ReferralRewardService
from ..utils.exceptions import ReferralEngineError


def parse_event_option(value: str):
    """'milestone:<key>' becomes {'milestone': key}; other values pass through."""
    if value.startswith('milestone:'):
        return {'milestone': value.split(':', 1)[1]}
    return value


@click.group('referrals')
def referrals_cli():
    """Referral reward commands."""
    pass


@referrals_cli.command('seed-config')
@click.option('--from-file', 'config_file', type=click.File('r'), help='JSON file with configuration blocks')
@click.option('--updated-by', default='cli', help='Recorded as last_updated_by')
@with_appcontext
def seed_config(config_file, updated_by):
    """
    Ensure the default referral configuration exists.

    With --from-file, the blocks in the file replace the stored ones.
    """
    store = ReferralConfigStore(auto_provision=True)

    try:
        configuration = store.get_active_configuration()
        if config_file:
            data = json.load(config_file)
            configuration = store.update_configuration(data, updated_by=updated_by)
    except ReferralEngineError as e:
        raise click.ClickException(e.message)
    except json.JSONDecodeError as e:
        raise click.ClickException(f'Invalid JSON in {config_file.name}: {e}')

    click.echo(f"Referral configuration '{configuration.name}' is active")
    click.echo(f"  Signup: {configuration.signup_reward.referrer_points}/"
               f"{configuration.signup_reward.referred_points} points")
    click.echo(f"  First purchase: {configuration.first_purchase_reward.referrer_points}/"
               f"{configuration.first_purchase_reward.referred_points} points")
    click.echo(f"  Milestones: {len(configuration.milestone_rewards)}")
    click.echo(f"  Campaigns: {len(configuration.campaigns)}")
    click.echo(f"  Tenant overrides: {len(configuration.tenant_overrides)}")


@referrals_cli.command('preview')
@click.option('--event', 'event_type', required=True, help='signup, first_purchase or milestone:<key>')
@click.option('--tenant-id', help='Tenant the event belongs to')
@click.option('--tier', help='Referrer tier (defaults to REFERRAL_DEFAULT_TIER)')
@click.option('--purchase-amount', default='0', help='Purchase amount for campaign conditions')
@click.option('--user-type', type=click.Choice(['new', 'existing', 'all']), help='Referred user type')
@with_appcontext
def preview_reward(event_type, tenant_id, tier, purchase_amount, user_type):
    """Show the points an event would earn right now."""
    service = ReferralRewardService()

    try:
        result = service.compute_referral_reward(
            event_type=parse_event_option(event_type),
            tenant_id=tenant_id,
            user_tier=tier,
            purchase_amount=purchase_amount,
            user_type=user_type
        )
    except ReferralEngineError as e:
        raise click.ClickException(e.message)

    click.echo(json.dumps(result.to_dict(), indent=2))


@referrals_cli.command('balance')
@click.argument('user_id')
@click.option('--tenant-id', help='Only count accruals for this tenant')
@with_appcontext
def show_balance(user_id, tenant_id):
    """Show referral points credited to a user."""
    points = AccrualLedger().get_points_balance(user_id, tenant_id=tenant_id)
    scope = f' at tenant {tenant_id}' if tenant_id else ''
    click.echo(f"User {user_id}{scope}: {points} referral points")


def init_app(app):
    """Register referral commands with Flask app."""
    app.cli.add_command(referrals_cli)
