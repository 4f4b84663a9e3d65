import os

# boto3 clients are created at import time by the Lambda modules
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")

import pytest  # noqa: E402
from aws_cdk.assertions import Template  # noqa: E402

from common.config import BuildConfig, build_config_from_dict  # noqa: E402
from hosting_app.hosting_app import HostingUnits  # noqa: E402
from stack_test_helpers import build_units, raw_config  # noqa: E402


@pytest.fixture
def raw() -> dict:
    return raw_config()


@pytest.fixture
def build_config(raw: dict) -> BuildConfig:
    return build_config_from_dict("dev", raw)


@pytest.fixture(scope="module")
def units() -> HostingUnits:
    return build_units(build_config_from_dict("dev", raw_config()))


# ------------------- Per unit templates -------------------


@pytest.fixture(scope="module")
def network_template(units: HostingUnits) -> Template:
    return Template.from_stack(units.network)


@pytest.fixture(scope="module")
def security_groups_template(units: HostingUnits) -> Template:
    return Template.from_stack(units.security_groups)


@pytest.fixture(scope="module")
def ecs_template(units: HostingUnits) -> Template:
    return Template.from_stack(units.ecs)


@pytest.fixture(scope="module")
def ecs_scheduler_template(units: HostingUnits) -> Template:
    return Template.from_stack(units.ecs_scheduler)


@pytest.fixture(scope="module")
def cw_alarms_template(units: HostingUnits) -> Template:
    return Template.from_stack(units.cw_alarms)


@pytest.fixture(scope="module")
def waf_template(units: HostingUnits) -> Template:
    return Template.from_stack(units.waf)


@pytest.fixture(scope="module")
def cloudfront_template(units: HostingUnits) -> Template:
    return Template.from_stack(units.cloudfront)


@pytest.fixture(scope="module")
def budget_template(units: HostingUnits) -> Template:
    return Template.from_stack(units.budget)


@pytest.fixture(scope="module")
def cloudtrail_template(units: HostingUnits) -> Template:
    return Template.from_stack(units.cloudtrail)
