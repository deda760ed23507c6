"""
Referral Reward API endpoints.

Handles reward previews, awarding referral events and admin management
of the referral configuration (global blocks, campaigns, tenant overrides).
"""
from flask import Blueprint, request, jsonify

from ..services.accrual_ledger import AccrualLedger
from ..services.referral_config_store import ReferralConfigStore
from ..services.referral_reward_service import ReferralRewardService
from ..utils.errors import bad_request, ErrorCode

referrals_bp = Blueprint('referrals', __name__)


def get_current_admin():
    """Admin identity for audit fields."""
    return request.headers.get('X-Admin-Id', 'api:unknown')


def get_json_body():
    """Request body as a dict, or None when it is missing or not an object."""
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    return data if isinstance(data, dict) else None


# ==================== Reward Endpoints ====================

@referrals_bp.route('/rewards/preview', methods=['POST'])
def preview_reward():
    """
    Compute the reward for an event without crediting anything.

    Request body:
    {
        "event_type": "signup",  # or "first_purchase" or {"milestone": "first_booking"}
        "tenant_id": "spa-42",   # optional
        "user_tier": "gold",     # optional - defaults to REFERRAL_DEFAULT_TIER
        "purchase_amount": 120,  # optional
        "user_type": "new"       # optional
    }
    """
    data = get_json_body()
    if data is None:
        return bad_request('Request body must be a JSON object')
    if 'event_type' not in data:
        return bad_request('event_type is required', ErrorCode.MISSING_FIELD)

    service = ReferralRewardService()
    result = service.compute_referral_reward(
        event_type=data['event_type'],
        tenant_id=data.get('tenant_id'),
        user_tier=data.get('user_tier'),
        purchase_amount=data.get('purchase_amount', 0),
        user_type=data.get('user_type')
    )

    return jsonify({
        'success': True,
        'reward': result.to_dict()
    })


@referrals_bp.route('/rewards/award', methods=['POST'])
def award_reward():
    """
    Compute and credit the reward for a referral event.

    Repeated deliveries of the same event are accepted and answered with
    applied=false, reason="duplicate".

    Request body:
    {
        "event_type": {"milestone": "first_booking"},
        "tenant_id": "spa-42",
        "referrer_user_id": "u-1",
        "referred_user_id": "u-2",
        "user_tier": "gold",
        "purchase_amount": 0
    }
    """
    data = get_json_body()
    if data is None:
        return bad_request('Request body must be a JSON object')

    for field in ('event_type', 'referrer_user_id', 'referred_user_id'):
        if not data.get(field):
            return bad_request(f'{field} is required', ErrorCode.MISSING_FIELD)

    service = ReferralRewardService()
    result = service.award_referral_event(
        event_type=data['event_type'],
        tenant_id=data.get('tenant_id'),
        referrer_user_id=data['referrer_user_id'],
        referred_user_id=data['referred_user_id'],
        user_tier=data.get('user_tier'),
        purchase_amount=data.get('purchase_amount', 0),
        user_type=data.get('user_type')
    )

    status_code = 200 if result.get('success') else 400
    return jsonify(result), status_code


@referrals_bp.route('/users/<user_id>/balance', methods=['GET'])
def get_user_balance(user_id):
    """Referral points credited to a user, optionally for one tenant."""
    tenant_id = request.args.get('tenant_id')
    balance = AccrualLedger().get_points_balance(user_id, tenant_id=tenant_id)

    return jsonify({
        'user_id': user_id,
        'tenant_id': tenant_id,
        'points': balance
    })


# ==================== Configuration Endpoints ====================

@referrals_bp.route('/config', methods=['GET'])
def get_referral_config():
    """Get the active referral configuration with overrides and campaigns."""
    configuration = ReferralConfigStore().get_active_configuration()
    return jsonify({'config': configuration.to_dict()})


@referrals_bp.route('/config', methods=['PUT'])
def update_referral_config():
    """
    Update the global referral configuration.

    Any of signup_reward, first_purchase_reward, milestone_rewards,
    tier_multipliers, settings and campaigns may be sent; each replaces
    the stored block.
    """
    data = get_json_body()
    if data is None:
        return bad_request('Request body must be a JSON object')

    configuration = ReferralConfigStore().update_configuration(data, updated_by=get_current_admin())

    return jsonify({
        'success': True,
        'config': configuration.to_dict()
    })


@referrals_bp.route('/config/tenants/<tenant_id>', methods=['PUT'])
def upsert_tenant_override(tenant_id):
    """
    Create or replace a tenant's referral override.

    Request body:
    {
        "tenant_name": "Downtown Spa",
        "signup_reward": {"referrer_points": 300, "referred_points": 150},
        "milestone_rewards": [{"milestone": "first_booking", "referrer_points": 120}],
        "settings": {"allow_self_referral": false}
    }
    """
    data = get_json_body()
    if data is None:
        return bad_request('Request body must be a JSON object')

    override = ReferralConfigStore().upsert_tenant_override(
        tenant_id=tenant_id,
        tenant_name=data.get('tenant_name'),
        owner_id=data.get('owner_id') or get_current_admin(),
        override_data=data
    )

    return jsonify({
        'success': True,
        'override': override.to_dict()
    })
