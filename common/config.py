"""Environment scoped configuration record.

The record lives in the CDK context (``cdk.json``), one entry per
environment, and is selected with ``cdk synth -c config=<env>``::

    {
        "account": "123456789012",
        "region": "eu-west-1",
        "project": "shop",
        "environment": "dev",
        "stacks": {
            "budget": {"limit": 100},
            "network": {
                "vpc_cidr": "10.0.0.0/16",
                "private_subnets": [{"zone": "a", "cidr": "10.0.1.0/24"}],
                "public_subnets": [{"zone": "a", "cidr": "10.0.2.0/24"}]
            },
            "ecs": [{"name": "web", "cpu": 256, "memory": 512, "port": 8080,
                     "health_check_path": "/health", "environment": {}}],
            "schedule": {"start": "0 7 ? * MON-FRI *", "stop": "0 19 ? * MON-FRI *"},
            "waf": {"ip_blacklist": [], "ip_whitelist": []}
        }
    }

CIDR syntax, containment and overlap are checked by the topology planner,
not here.
"""
import ipaddress
from typing import Any, Mapping

from attrs import define, field
from attrs.validators import (
    deep_iterable,
    deep_mapping,
    ge,
    gt,
    in_,
    instance_of,
    le,
    matches_re,
)
from aws_cdk import App

from common import constants
from common.errors import ConfigurationError
from common.logger import logger

ACCOUNT_PATTERN = r"\d{12}"
REGION_PATTERN = r"[a-z]{2}(-[a-z]+)+-\d"
PROJECT_PATTERN = r"[a-z][a-z0-9-]{0,19}"
ZONE_PATTERN = r"[a-z]"
SERVICE_NAME_PATTERN = r"[a-z][a-z0-9-]*"
CRON_FIELDS = 6


def _cidr_notation(instance: Any, attribute: Any, value: tuple[str, ...]) -> None:
    for address in value:
        if not isinstance(address, str) or "/" not in address:
            raise ValueError(f"'{address}' is not written in CIDR notation")
        ipaddress.IPv4Network(address)


def _not_bool(instance: Any, attribute: Any, value: Any) -> None:
    if isinstance(value, bool):
        raise TypeError(f"'{attribute.name}' must be a number, got {value!r}")


def _cron_expression(instance: Any, attribute: Any, value: str) -> None:
    if len(value.split()) != CRON_FIELDS:
        raise ValueError(
            f"'{value}' must have {CRON_FIELDS} fields (minutes hours day-of-month month day-of-week year)"
        )


@define(slots=True, frozen=True)
class BudgetConfig:
    limit: float = field(validator=[_not_bool, instance_of((int, float)), gt(0)])


@define(slots=True, frozen=True)
class SubnetConfig:
    zone: str = field(validator=[instance_of(str), matches_re(ZONE_PATTERN)])
    cidr: str = field(validator=instance_of(str))


@define(slots=True, frozen=True)
class NetworkConfig:
    vpc_cidr: str = field(validator=instance_of(str))
    private_subnets: tuple[SubnetConfig, ...] = field(
        validator=deep_iterable(instance_of(SubnetConfig), instance_of(tuple))
    )
    public_subnets: tuple[SubnetConfig, ...] = field(
        validator=deep_iterable(instance_of(SubnetConfig), instance_of(tuple))
    )


@define(slots=True, frozen=True, kw_only=True)
class ServiceConfig:
    name: str = field(validator=[instance_of(str), matches_re(SERVICE_NAME_PATTERN)])
    cpu: int = field(validator=[_not_bool, instance_of(int), gt(0)])
    memory: int = field(validator=[_not_bool, instance_of(int), gt(0)])
    port: int = field(validator=[_not_bool, instance_of(int), ge(1), le(65535)])
    health_check_path: str = field(validator=[instance_of(str), matches_re(r"/.*")])
    environment: dict[str, str] = field(
        factory=dict,
        validator=deep_mapping(instance_of(str), instance_of(str), instance_of(dict)),
    )

    def __attrs_post_init__(self) -> None:
        if len(self.target_group_name) > constants.TARGET_GROUP_NAME_MAX_LENGTH:
            raise ValueError(
                f"target group name '{self.target_group_name}' exceeds "
                f"{constants.TARGET_GROUP_NAME_MAX_LENGTH} characters"
            )

    @property
    def target_group_name(self) -> str:
        return f"{self.name}-{self.port}-tg"


@define(slots=True, frozen=True)
class ScheduleConfig:
    start: str = field(validator=[instance_of(str), _cron_expression])
    stop: str = field(validator=[instance_of(str), _cron_expression])


@define(slots=True, frozen=True)
class WafConfig:
    ip_blacklist: tuple[str, ...] = field(validator=[instance_of(tuple), _cidr_notation])
    ip_whitelist: tuple[str, ...] = field(validator=[instance_of(tuple), _cidr_notation])


@define(slots=True, frozen=True, kw_only=True)
class StacksConfig:
    budget: BudgetConfig
    network: NetworkConfig
    ecs: tuple[ServiceConfig, ...] = field(
        validator=deep_iterable(instance_of(ServiceConfig), instance_of(tuple))
    )
    schedule: ScheduleConfig
    waf: WafConfig


@define(slots=True, frozen=True, kw_only=True)
class BuildConfig:
    account: str = field(validator=[instance_of(str), matches_re(ACCOUNT_PATTERN)])
    region: str = field(validator=[instance_of(str), matches_re(REGION_PATTERN)])
    project: str = field(validator=[instance_of(str), matches_re(PROJECT_PATTERN)])
    environment: str = field(validator=in_(constants.ALLOWED_ENVS))
    stacks: StacksConfig = field(validator=instance_of(StacksConfig))

    @property
    def prefix(self) -> str:
        """Shared name prefix, e.g. ``dev-shop``."""
        return f"{self.environment}-{self.project}"

    @property
    def services(self) -> tuple[ServiceConfig, ...]:
        return self.stacks.ecs


# ---------- loading ----------


def _require(raw: Any, key: str, path: str) -> Any:
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"{path} must be a mapping")
    if key not in raw or raw[key] is None:
        raise ConfigurationError(f"{path}.{key} is required")
    return raw[key]


def _require_list(raw: Any, key: str, path: str) -> list[Any]:
    value = _require(raw, key, path)
    if not isinstance(value, (list, tuple)):
        raise ConfigurationError(f"{path}.{key} must be a list")
    return list(value)


def _build(path: str, cls: type, **kwargs: Any) -> Any:
    try:
        return cls(**kwargs)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{path}: {e}") from e


def _subnets(raw: Any, key: str, path: str) -> tuple[SubnetConfig, ...]:
    subnets = []
    for index, item in enumerate(_require_list(raw, key, path)):
        item_path = f"{path}.{key}[{index}]"
        subnets.append(
            _build(
                item_path,
                SubnetConfig,
                zone=_require(item, "zone", item_path),
                cidr=_require(item, "cidr", item_path),
            )
        )
    return tuple(subnets)


def _network(raw: Any, path: str) -> NetworkConfig:
    return _build(
        path,
        NetworkConfig,
        vpc_cidr=_require(raw, "vpc_cidr", path),
        private_subnets=_subnets(raw, "private_subnets", path),
        public_subnets=_subnets(raw, "public_subnets", path),
    )


def _services(raw: Any, path: str) -> tuple[ServiceConfig, ...]:
    services: list[ServiceConfig] = []
    for index, item in enumerate(_require_list(raw, "ecs", path)):
        item_path = f"{path}.ecs[{index}]"
        environment = item.get("environment") if isinstance(item, Mapping) else None
        services.append(
            _build(
                item_path,
                ServiceConfig,
                name=_require(item, "name", item_path),
                cpu=_require(item, "cpu", item_path),
                memory=_require(item, "memory", item_path),
                port=_require(item, "port", item_path),
                health_check_path=_require(item, "health_check_path", item_path),
                environment=dict(environment or {}),
            )
        )
    _ensure_unique(services, "name", f"{path}.ecs")
    _ensure_unique(services, "port", f"{path}.ecs")
    return tuple(services)


def _ensure_unique(services: list[ServiceConfig], attribute: str, path: str) -> None:
    seen: set[Any] = set()
    for service in services:
        value = getattr(service, attribute)
        if value in seen:
            raise ConfigurationError(f"{path}: duplicate service {attribute} {value!r}")
        seen.add(value)


def _stacks(raw: Any, path: str) -> StacksConfig:
    budget_path = f"{path}.budget"
    schedule_path = f"{path}.schedule"
    waf_path = f"{path}.waf"
    budget = _require(raw, "budget", path)
    schedule = _require(raw, "schedule", path)
    waf = _require(raw, "waf", path)
    return _build(
        path,
        StacksConfig,
        budget=_build(budget_path, BudgetConfig, limit=_require(budget, "limit", budget_path)),
        network=_network(_require(raw, "network", path), f"{path}.network"),
        ecs=_services(raw, path),
        schedule=_build(
            schedule_path,
            ScheduleConfig,
            start=_require(schedule, "start", schedule_path),
            stop=_require(schedule, "stop", schedule_path),
        ),
        waf=_build(
            waf_path,
            WafConfig,
            ip_blacklist=tuple(_require_list(waf, "ip_blacklist", waf_path)),
            ip_whitelist=tuple(_require_list(waf, "ip_whitelist", waf_path)),
        ),
    )


def build_config_from_dict(environment: str, raw: Mapping[str, Any]) -> BuildConfig:
    """Convert the raw context entry for ``environment`` into a BuildConfig.

    Raises ConfigurationError naming the offending field on the first
    missing or malformed value.
    """
    path = environment
    config = _build(
        path,
        BuildConfig,
        account=_require(raw, "account", path),
        region=_require(raw, "region", path),
        project=_require(raw, "project", path),
        environment=_require(raw, "environment", path),
        stacks=_stacks(_require(raw, "stacks", path), f"{path}.stacks"),
    )
    if config.environment != environment:
        raise ConfigurationError(
            f"{path}.environment is '{config.environment}' but the record was selected as '{environment}'"
        )
    return config


def load_build_config(app: App) -> BuildConfig:
    """Select and validate the configuration record from the CDK context."""
    environment = app.node.try_get_context(constants.CONFIG_CONTEXT_KEY) or constants.DEFAULT_ENV
    if environment not in constants.ALLOWED_ENVS:
        raise ConfigurationError(
            f'Incorrect context variable "{environment}", pass -c config=<{"|".join(constants.ALLOWED_ENVS)}>'
        )
    raw = app.node.try_get_context(environment)
    if not raw:
        raise ConfigurationError(f"No configuration record found in the CDK context for '{environment}'")

    config = build_config_from_dict(environment, raw)
    logger.info(
        "Loaded build configuration",
        environment=config.environment,
        project=config.project,
        region=config.region,
        services=[service.name for service in config.services],
    )
    return config
