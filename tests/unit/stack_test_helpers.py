import copy
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from aws_cdk import App
from aws_cdk.assertions import Match, Template

from common.config import BuildConfig, build_config_from_dict
from hosting_app.hosting_app import HostingUnits, build_hosting_app

# ------------------- Configuration records -------------------

RAW_CONFIG: Mapping[str, Any] = {
    "account": "123456789012",
    "region": "eu-west-1",
    "project": "shop",
    "environment": "dev",
    "stacks": {
        "budget": {"limit": 100},
        "network": {
            "vpc_cidr": "10.0.0.0/16",
            "private_subnets": [{"zone": "a", "cidr": "10.0.1.0/24"}],
            "public_subnets": [{"zone": "a", "cidr": "10.0.2.0/24"}],
        },
        "ecs": [
            {
                "name": "web",
                "cpu": 256,
                "memory": 512,
                "port": 8080,
                "health_check_path": "/health",
                "environment": {"STAGE": "dev"},
            }
        ],
        "schedule": {"start": "0 7 ? * MON-FRI *", "stop": "0 19 ? * MON-FRI *"},
        "waf": {"ip_blacklist": ["198.51.100.0/24"], "ip_whitelist": []},
    },
}

SECOND_SERVICE: Mapping[str, Any] = {
    "name": "api",
    "cpu": 512,
    "memory": 1024,
    "port": 8081,
    "health_check_path": "/api/health",
    "environment": {},
}


def raw_config(**overrides: Any) -> dict[str, Any]:
    """Deep copy of the reference record with top level ``stacks`` sections replaced."""
    raw = copy.deepcopy(dict(RAW_CONFIG))
    raw["stacks"].update(copy.deepcopy(overrides))
    return raw


def two_service_config() -> BuildConfig:
    raw = raw_config()
    raw["stacks"]["ecs"].append(copy.deepcopy(dict(SECOND_SERVICE)))
    return build_config_from_dict("dev", raw)


# ------------------- Test Case Data Classes -------------------


@dataclass(frozen=True)
class LambdaTestCase:
    id: str
    function_name: str
    handler: str
    timeout: int
    extra_env: Mapping[str, Any]


@dataclass(frozen=True)
class LogGroupTestCase:
    id: str
    log_group_name: str
    retention_days: int


@dataclass(frozen=True)
class AlarmTestCase:
    id: str
    alarm_name: str
    metric_name: str
    comparison_operator: str
    threshold: int


# ------------------- Helper Functions -------------------


def find_resources_by_type(
    template: Template, resource_type: str, props: Optional[dict] = None
) -> Mapping[str, Any]:
    return template.find_resources(resource_type, props=props)


def get_single_resource_id(
    resources: Mapping[str, Any], resource_type: str = "resource"
) -> str:
    assert len(resources) == 1, f"expected exactly one {resource_type}, found {len(resources)}"
    return next(iter(resources))


def get_resource_id_by_properties(
    template: Template, resource_type: str, properties: Mapping[str, Any]
) -> str:
    resources = find_resources_by_type(
        template, resource_type, {"Properties": dict(properties)}
    )
    return get_single_resource_id(resources, resource_type)


def depends_on(template: Template, logical_id: str) -> list[str]:
    resource = template.to_json()["Resources"][logical_id]
    return list(resource.get("DependsOn", []))


def build_units(config: BuildConfig) -> HostingUnits:
    app = App()
    return build_hosting_app(app, config)


def expected_lambda_props(case: LambdaTestCase) -> Mapping[str, Any]:
    return {
        "FunctionName": case.function_name,
        "Handler": case.handler,
        "Runtime": "python3.12",
        "Timeout": case.timeout,
        "Architectures": ["x86_64"],
        "Code": {
            "S3Bucket": Match.any_value(),
            "S3Key": Match.any_value(),
        },
        "Environment": {
            "Variables": Match.object_like({"LOG_LEVEL": "INFO", **case.extra_env})
        },
    }
