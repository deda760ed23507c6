"""
Immutable value types for the referral reward engine.

Everything here is a frozen dataclass built once from stored data and
then passed by value through the resolver, matcher and calculator.
Constructors validate structure and raise InvalidConfigurationError on
bad data; they never invent values beyond the documented defaults.

Multipliers and money amounts are Decimal so stacking and rounding are
exact.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Optional, Tuple, Mapping, FrozenSet, Dict, Any, Iterable

from ...utils.clock import as_naive_utc
from ...utils.exceptions import InvalidConfigurationError


# ==================== Constants ====================

USER_TYPES = frozenset({'new', 'existing', 'all'})

DEFAULT_TIER_MULTIPLIERS = {
    'bronze': Decimal('1.0'),
    'gold': Decimal('1.5'),
    'platinum': Decimal('2.0'),
}

ONE = Decimal('1')


# ==================== Coercion helpers ====================

def to_decimal(value, field_name: str, error_cls=InvalidConfigurationError) -> Decimal:
    """
    Coerce an int/float/str/Decimal to a finite Decimal.

    Floats go through str() so 1.5 becomes Decimal('1.5'), not its
    binary expansion.
    """
    if isinstance(value, bool) or value is None:
        raise error_cls(f'{field_name} must be a number, got {value!r}', field_name)
    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, float):
            result = Decimal(str(value))
        elif isinstance(value, (int, str)):
            result = Decimal(value)
        else:
            raise TypeError(type(value).__name__)
    except (InvalidOperation, TypeError, ValueError):
        raise error_cls(f'{field_name} must be a number, got {value!r}', field_name)
    if not result.is_finite():
        raise error_cls(f'{field_name} must be finite, got {value!r}', field_name)
    return result


def _to_points(value, field_name: str) -> int:
    number = to_decimal(value, field_name)
    if number != number.to_integral_value():
        raise InvalidConfigurationError(f'{field_name} must be a whole number of points', field_name)
    if number < 0:
        raise InvalidConfigurationError(f'{field_name} must be >= 0', field_name)
    return int(number)


def _to_bool(value, field_name: str) -> bool:
    """Accept real booleans and the strings 'true'/'false', nothing else."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
        return value.strip().lower() == 'true'
    raise InvalidConfigurationError(f'{field_name} must be true or false, got {value!r}', field_name)


def _to_datetime(value, field_name: str) -> datetime:
    if isinstance(value, datetime):
        return as_naive_utc(value)
    if isinstance(value, str) and value:
        try:
            return as_naive_utc(datetime.fromisoformat(value.replace('Z', '+00:00')))
        except ValueError:
            pass
    raise InvalidConfigurationError(f'{field_name} must be a datetime or ISO-8601 string', field_name)


def normalize_tenant_id(value) -> Optional[str]:
    """Tenant ids are compared as stripped strings; blank means un-tenanted."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_tier(value) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip().lower() or None


# ==================== Reward blocks ====================

@dataclass(frozen=True)
class RewardRule:
    """Points for one reward type (signup or first purchase)."""
    enabled: bool = True
    referrer_points: int = 0
    referred_points: int = 0
    description: str = ''

    def __post_init__(self):
        object.__setattr__(self, 'enabled', _to_bool(self.enabled, 'enabled'))
        object.__setattr__(self, 'referrer_points', _to_points(self.referrer_points, 'referrer_points'))
        object.__setattr__(self, 'referred_points', _to_points(self.referred_points, 'referred_points'))
        object.__setattr__(self, 'description', self.description or '')

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], default: 'RewardRule') -> 'RewardRule':
        """Build from stored JSON, taking missing keys from ``default``."""
        if data is None:
            return default
        if not isinstance(data, dict):
            raise InvalidConfigurationError('Reward block must be an object')
        return cls(
            enabled=data.get('enabled', default.enabled),
            referrer_points=data.get('referrer_points', default.referrer_points),
            referred_points=data.get('referred_points', default.referred_points),
            description=data.get('description', default.description),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'enabled': self.enabled,
            'referrer_points': self.referrer_points,
            'referred_points': self.referred_points,
            'description': self.description,
        }


DEFAULT_SIGNUP_REWARD = RewardRule(
    enabled=True,
    referrer_points=200,
    referred_points=100,
    description='Reward for successful signup through referral',
)

DEFAULT_FIRST_PURCHASE_REWARD = RewardRule(
    enabled=True,
    referrer_points=500,
    referred_points=250,
    description='Reward for first purchase by referred user',
)


@dataclass(frozen=True)
class MilestoneReward:
    """Points for a named milestone such as 'first_booking'."""
    milestone: str
    referrer_points: int = 100
    referred_points: int = 50
    enabled: bool = True
    description: str = ''

    def __post_init__(self):
        if not isinstance(self.milestone, str) or not self.milestone.strip():
            raise InvalidConfigurationError('Milestone key is required', 'milestone')
        object.__setattr__(self, 'milestone', self.milestone.strip())
        object.__setattr__(self, 'referrer_points', _to_points(self.referrer_points, 'referrer_points'))
        object.__setattr__(self, 'referred_points', _to_points(self.referred_points, 'referred_points'))
        object.__setattr__(self, 'enabled', _to_bool(self.enabled, 'enabled'))
        object.__setattr__(self, 'description', self.description or '')

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MilestoneReward':
        if not isinstance(data, dict):
            raise InvalidConfigurationError('Milestone reward must be an object')
        return cls(
            milestone=data.get('milestone'),
            referrer_points=data.get('referrer_points', 100),
            referred_points=data.get('referred_points', 50),
            enabled=data.get('enabled', True),
            description=data.get('description', ''),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'milestone': self.milestone,
            'referrer_points': self.referrer_points,
            'referred_points': self.referred_points,
            'enabled': self.enabled,
            'description': self.description,
        }


def _milestones(items: Optional[Iterable]) -> Tuple[MilestoneReward, ...]:
    milestones = tuple(
        item if isinstance(item, MilestoneReward) else MilestoneReward.from_dict(item)
        for item in (items or ())
    )
    seen = set()
    for milestone in milestones:
        if milestone.milestone in seen:
            raise InvalidConfigurationError(
                f"Duplicate milestone key '{milestone.milestone}'", 'milestone_rewards'
            )
        seen.add(milestone.milestone)
    return milestones


@dataclass(frozen=True)
class ReferralSettings:
    """Program settings that travel with a configuration or tenant override."""
    code_expiry_days: int = 30
    max_referrals_per_user: int = 100
    min_cashout_points: int = 1000
    auto_approve: bool = True
    allow_self_referral: bool = False
    code_length: int = 6
    email_notifications: bool = True

    def __post_init__(self):
        for name in ('code_expiry_days', 'max_referrals_per_user', 'min_cashout_points', 'code_length'):
            object.__setattr__(self, name, _to_points(getattr(self, name), name))
        for name in ('auto_approve', 'allow_self_referral', 'email_notifications'):
            object.__setattr__(self, name, _to_bool(getattr(self, name), name))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ReferralSettings':
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise InvalidConfigurationError('Settings must be an object', 'settings')
        known = {key: value for key, value in data.items() if key in cls.__dataclass_fields__}
        return cls(**known)

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.__dataclass_fields__}


# ==================== Campaigns ====================

@dataclass(frozen=True)
class CampaignConditions:
    """Event-dependent eligibility checks, evaluated at reward time."""
    min_purchase: Decimal = Decimal('0')
    user_types: FrozenSet[str] = frozenset({'all'})

    def __post_init__(self):
        min_purchase = to_decimal(self.min_purchase, 'min_purchase')
        if min_purchase < 0:
            raise InvalidConfigurationError('min_purchase must be >= 0', 'min_purchase')
        user_types = frozenset(self.user_types or ())
        unknown = user_types - USER_TYPES
        if unknown:
            raise InvalidConfigurationError(
                f"Unknown user types: {', '.join(sorted(unknown))}", 'user_types'
            )
        object.__setattr__(self, 'min_purchase', min_purchase)
        object.__setattr__(self, 'user_types', user_types)

    def allows_user_type(self, user_type: Optional[str]) -> bool:
        """True when no user type is given or the campaign admits it."""
        if user_type is None or not self.user_types or 'all' in self.user_types:
            return True
        return user_type in self.user_types

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'CampaignConditions':
        data = data or {}
        user_types = data.get('user_types') or ('all',)
        if isinstance(user_types, str):
            user_types = (user_types,)
        return cls(
            min_purchase=data.get('min_purchase', 0),
            user_types=frozenset(user_types),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'min_purchase': float(self.min_purchase),
            'user_types': sorted(self.user_types),
        }


@dataclass(frozen=True)
class Campaign:
    """
    Time-boxed promotional multiplier.

    Live when enabled and start_date <= now <= end_date (both ends
    inclusive). An empty target_tenants set means every tenant.
    """
    name: str
    start_date: datetime
    end_date: datetime
    multiplier: Decimal = Decimal('1.5')
    enabled: bool = True
    description: str = ''
    target_tenants: FrozenSet[str] = frozenset()
    conditions: CampaignConditions = field(default_factory=CampaignConditions)

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidConfigurationError('Campaign name is required', 'name')
        start = _to_datetime(self.start_date, 'start_date')
        end = _to_datetime(self.end_date, 'end_date')
        if end < start:
            raise InvalidConfigurationError(
                f"Campaign '{self.name}' ends before it starts", 'end_date'
            )
        multiplier = to_decimal(self.multiplier, 'multiplier')
        if multiplier <= 0:
            raise InvalidConfigurationError('Campaign multiplier must be positive', 'multiplier')
        targets = frozenset(
            tenant for tenant in (normalize_tenant_id(t) for t in (self.target_tenants or ())) if tenant
        )
        object.__setattr__(self, 'start_date', start)
        object.__setattr__(self, 'end_date', end)
        object.__setattr__(self, 'multiplier', multiplier)
        object.__setattr__(self, 'enabled', _to_bool(self.enabled, 'enabled'))
        object.__setattr__(self, 'description', self.description or '')
        object.__setattr__(self, 'target_tenants', targets)

    @property
    def is_tenant_targeted(self) -> bool:
        return bool(self.target_tenants)

    def is_live(self, now: datetime) -> bool:
        return self.enabled and self.start_date <= as_naive_utc(now) <= self.end_date

    def targets(self, tenant_id: Optional[str]) -> bool:
        if not self.target_tenants:
            return True
        return tenant_id is not None and tenant_id in self.target_tenants

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Campaign':
        if not isinstance(data, dict):
            raise InvalidConfigurationError('Campaign must be an object', 'campaigns')
        return cls(
            name=data.get('name'),
            description=data.get('description', ''),
            start_date=data.get('start_date'),
            end_date=data.get('end_date'),
            multiplier=data.get('multiplier', Decimal('1.5')),
            enabled=data.get('enabled', True),
            target_tenants=frozenset(data.get('target_tenants') or ()),
            conditions=CampaignConditions.from_dict(data.get('conditions')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'description': self.description,
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'multiplier': float(self.multiplier),
            'enabled': self.enabled,
            'target_tenants': sorted(self.target_tenants),
            'conditions': self.conditions.to_dict(),
        }


# ==================== Configuration aggregate ====================

@dataclass(frozen=True)
class TenantOverride:
    """
    Per-tenant replacement for the reward and settings blocks.

    Each block replaces the global one as a whole. Blocks missing from
    the stored data take schema defaults, never the global values.
    """
    tenant_id: str
    tenant_name: Optional[str] = None
    owner_id: Optional[str] = None
    signup_reward: RewardRule = DEFAULT_SIGNUP_REWARD
    first_purchase_reward: RewardRule = DEFAULT_FIRST_PURCHASE_REWARD
    milestone_rewards: Tuple[MilestoneReward, ...] = ()
    settings: ReferralSettings = field(default_factory=ReferralSettings)

    def __post_init__(self):
        tenant_id = normalize_tenant_id(self.tenant_id)
        if tenant_id is None:
            raise InvalidConfigurationError('Tenant override requires a tenant_id', 'tenant_id')
        object.__setattr__(self, 'tenant_id', tenant_id)
        object.__setattr__(self, 'milestone_rewards', _milestones(self.milestone_rewards))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TenantOverride':
        if not isinstance(data, dict):
            raise InvalidConfigurationError('Tenant override must be an object', 'tenant_overrides')
        return cls(
            tenant_id=data.get('tenant_id'),
            tenant_name=data.get('tenant_name'),
            owner_id=normalize_tenant_id(data.get('owner_id')),
            signup_reward=RewardRule.from_dict(data.get('signup_reward'), DEFAULT_SIGNUP_REWARD),
            first_purchase_reward=RewardRule.from_dict(
                data.get('first_purchase_reward'), DEFAULT_FIRST_PURCHASE_REWARD
            ),
            milestone_rewards=_milestones(data.get('milestone_rewards')),
            settings=ReferralSettings.from_dict(data.get('settings')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tenant_id': self.tenant_id,
            'tenant_name': self.tenant_name,
            'owner_id': self.owner_id,
            'signup_reward': self.signup_reward.to_dict(),
            'first_purchase_reward': self.first_purchase_reward.to_dict(),
            'milestone_rewards': [m.to_dict() for m in self.milestone_rewards],
            'settings': self.settings.to_dict(),
        }


def _tier_multipliers(data: Optional[Mapping]) -> Mapping[str, Decimal]:
    source = DEFAULT_TIER_MULTIPLIERS if data is None else data
    if not isinstance(source, Mapping):
        raise InvalidConfigurationError('tier_multipliers must be an object', 'tier_multipliers')
    multipliers = {}
    for tier, value in source.items():
        name = normalize_tier(tier)
        if not name:
            raise InvalidConfigurationError('Tier name is required', 'tier_multipliers')
        multiplier = to_decimal(value, f'tier_multipliers.{name}')
        if multiplier <= 0:
            raise InvalidConfigurationError(
                f"Tier multiplier for '{name}' must be positive", 'tier_multipliers'
            )
        multipliers[name] = multiplier
    return MappingProxyType(multipliers)


@dataclass(frozen=True)
class Configuration:
    """Snapshot of the global referral configuration and its tenant overrides."""
    name: str = 'default'
    is_active: bool = True
    signup_reward: RewardRule = DEFAULT_SIGNUP_REWARD
    first_purchase_reward: RewardRule = DEFAULT_FIRST_PURCHASE_REWARD
    milestone_rewards: Tuple[MilestoneReward, ...] = ()
    tier_multipliers: Mapping[str, Decimal] = field(
        default_factory=lambda: MappingProxyType(dict(DEFAULT_TIER_MULTIPLIERS))
    )
    settings: ReferralSettings = field(default_factory=ReferralSettings)
    campaigns: Tuple[Campaign, ...] = ()
    tenant_overrides: Tuple[TenantOverride, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'milestone_rewards', _milestones(self.milestone_rewards))
        object.__setattr__(self, 'tier_multipliers', _tier_multipliers(self.tier_multipliers))
        object.__setattr__(self, 'campaigns', tuple(
            c if isinstance(c, Campaign) else Campaign.from_dict(c) for c in self.campaigns
        ))
        overrides = tuple(
            o if isinstance(o, TenantOverride) else TenantOverride.from_dict(o)
            for o in self.tenant_overrides
        )
        seen = set()
        for override in overrides:
            if override.tenant_id in seen:
                raise InvalidConfigurationError(
                    f"Duplicate override for tenant '{override.tenant_id}'", 'tenant_overrides'
                )
            seen.add(override.tenant_id)
        object.__setattr__(self, 'tenant_overrides', overrides)

    def get_tenant_override(self, tenant_id) -> Optional[TenantOverride]:
        tenant_id = normalize_tenant_id(tenant_id)
        if tenant_id is None:
            return None
        for override in self.tenant_overrides:
            if override.tenant_id == tenant_id:
                return override
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Configuration':
        if not isinstance(data, dict):
            raise InvalidConfigurationError('Configuration must be an object')
        return cls(
            name=data.get('name', 'default'),
            is_active=data.get('is_active', True),
            signup_reward=RewardRule.from_dict(data.get('signup_reward'), DEFAULT_SIGNUP_REWARD),
            first_purchase_reward=RewardRule.from_dict(
                data.get('first_purchase_reward'), DEFAULT_FIRST_PURCHASE_REWARD
            ),
            milestone_rewards=_milestones(data.get('milestone_rewards')),
            tier_multipliers=data.get('tier_multipliers'),
            settings=ReferralSettings.from_dict(data.get('settings')),
            campaigns=tuple(data.get('campaigns') or ()),
            tenant_overrides=tuple(data.get('tenant_overrides') or ()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'is_active': self.is_active,
            'signup_reward': self.signup_reward.to_dict(),
            'first_purchase_reward': self.first_purchase_reward.to_dict(),
            'milestone_rewards': [m.to_dict() for m in self.milestone_rewards],
            'tier_multipliers': {tier: float(value) for tier, value in self.tier_multipliers.items()},
            'settings': self.settings.to_dict(),
            'campaigns': [c.to_dict() for c in self.campaigns],
            'tenant_overrides': [o.to_dict() for o in self.tenant_overrides],
        }


# ==================== Engine outputs ====================

@dataclass(frozen=True)
class EffectiveConfig:
    """Reward rules in force for one tenant after override resolution."""
    tenant_id: Optional[str]
    tenant_name: Optional[str]
    signup_reward: RewardRule
    first_purchase_reward: RewardRule
    milestone_rewards: Tuple[MilestoneReward, ...]
    settings: ReferralSettings
    tier_multipliers: Mapping[str, Decimal]
    override_applied: bool = False

    def find_milestone(self, key: str) -> Optional[MilestoneReward]:
        """Enabled milestone with this key, if any."""
        for milestone in self.milestone_rewards:
            if milestone.milestone == key and milestone.enabled:
                return milestone
        return None

    def tier_multiplier(self, tier: Optional[str]) -> Decimal:
        return self.tier_multipliers.get(normalize_tier(tier), ONE)


@dataclass(frozen=True)
class AppliedMultipliers:
    tier: Decimal
    campaign: Decimal
    final: Decimal

    def to_dict(self) -> Dict[str, float]:
        return {
            'tier': float(self.tier),
            'campaign': float(self.campaign),
            'final': float(self.final),
        }


@dataclass(frozen=True)
class ResolvedTenant:
    tenant_id: Optional[str]
    tenant_name: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {'tenant_id': self.tenant_id, 'tenant_name': self.tenant_name}


@dataclass(frozen=True)
class RewardResult:
    """
    Points for one referral event plus everything needed to explain them.

    active_campaign is set only when the campaign actually applied;
    matched_campaign is whatever the matcher picked, applied or not.
    """
    event_type: str
    referrer_points: int
    referred_points: int
    applied_multipliers: AppliedMultipliers
    resolved_tenant: ResolvedTenant
    active_campaign: Optional[Campaign] = None
    matched_campaign: Optional[Campaign] = None
    override_applied: bool = False
    milestone: Optional[str] = None

    @property
    def campaign_applied(self) -> bool:
        return self.active_campaign is not None

    @property
    def total_points(self) -> int:
        return self.referrer_points + self.referred_points

    def to_dict(self) -> Dict[str, Any]:
        return {
            'event_type': self.event_type,
            'milestone': self.milestone,
            'referrer_points': self.referrer_points,
            'referred_points': self.referred_points,
            'applied_multipliers': self.applied_multipliers.to_dict(),
            'active_campaign': self.active_campaign.to_dict() if self.active_campaign else None,
            'matched_campaign': self.matched_campaign.to_dict() if self.matched_campaign else None,
            'campaign_applied': self.campaign_applied,
            'resolved_tenant': self.resolved_tenant.to_dict(),
            'override_applied': self.override_applied,
        }
