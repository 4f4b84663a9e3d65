"""Compose every unit of one environment into a CDK app.

Units are declared in dependency order and receive what they consume either
directly (construct objects) or through the shared ``ExportRegistry``. The
address layout is validated up front so a bad topology aborts the run before
any stack exists in the app.
"""
from attrs import define
from aws_cdk import App, Environment, Stack, Tags

from common import constants
from common.config import BuildConfig
from common.exports import ExportRegistry
from common.logger import logger
from compute.ecs_scheduler_stack import EcsSchedulerStack
from compute.ecs_stack import EcsStack
from edge.cloudfront_stack import CloudfrontStack
from edge.waf_stack import WafStack
from governance.budget_stack import BudgetStack
from governance.cloudtrail_stack import CloudtrailStack
from networking.networking_stack import NetworkingStack
from networking.references import network_plan
from observability.cloudwatch_alarms_stack import CloudwatchAlarmsStack
from security.security_groups_stack import SecurityGroupsStack


@define(slots=True, frozen=True, kw_only=True)
class HostingUnits:
    registry: ExportRegistry
    budget: BudgetStack
    cloudtrail: CloudtrailStack
    network: NetworkingStack
    security_groups: SecurityGroupsStack
    ecs: EcsStack
    ecs_scheduler: EcsSchedulerStack
    waf: WafStack
    cloudfront: CloudfrontStack
    cw_alarms: CloudwatchAlarmsStack

    @property
    def stacks(self) -> list[Stack]:
        """Units in declaration order."""
        return [
            self.budget,
            self.cloudtrail,
            self.network,
            self.security_groups,
            self.ecs,
            self.ecs_scheduler,
            self.waf,
            self.cloudfront,
            self.cw_alarms,
        ]


def stack_name(config: BuildConfig, unit: str) -> str:
    return f"{config.prefix}-{unit}"


def apply_tags(stack: Stack, config: BuildConfig) -> None:
    Tags.of(stack).add(constants.TAG_CREATED_BY, constants.TAG_CREATED_BY_VALUE)
    Tags.of(stack).add(constants.TAG_ENVIRONMENT, config.environment)


def build_hosting_app(app: App, config: BuildConfig) -> HostingUnits:
    # Raises TopologyError before anything is added to the app
    network_plan(config)

    registry = ExportRegistry()
    env = Environment(account=config.account, region=config.region)
    global_env = Environment(account=config.account, region=constants.GLOBAL_REGION)

    def declared(stack: Stack) -> Stack:
        apply_tags(stack, config)
        logger.info(
            "Declared unit",
            stack=stack.stack_name,
            region=stack.region,
            exports=len(registry),
        )
        return stack

    budget = declared(
        BudgetStack(
            app,
            stack_name(config, constants.UNIT_BUDGET),
            config=config,
            env=global_env,
        )
    )
    cloudtrail = declared(
        CloudtrailStack(
            app,
            stack_name(config, constants.UNIT_CLOUDTRAIL),
            config=config,
            env=env,
        )
    )

    network = declared(
        NetworkingStack(
            app,
            stack_name(config, constants.UNIT_NETWORK),
            config=config,
            registry=registry,
            env=env,
        )
    )
    security_groups = declared(
        SecurityGroupsStack(
            app,
            stack_name(config, constants.UNIT_SECURITY_GROUPS),
            config=config,
            registry=registry,
            env=env,
        )
    )
    security_groups.add_stack_dependency(network)

    ecs = declared(
        EcsStack(
            app,
            stack_name(config, constants.UNIT_ECS),
            config=config,
            registry=registry,
            perimeter=security_groups.perimeter,
            env=env,
        )
    )
    ecs.add_stack_dependency(security_groups)

    ecs_scheduler = declared(
        EcsSchedulerStack(
            app,
            stack_name(config, constants.UNIT_ECS_SCHEDULER),
            config=config,
            registry=registry,
            env=env,
        )
    )
    ecs_scheduler.add_stack_dependency(ecs)

    waf = declared(
        WafStack(
            app,
            stack_name(config, constants.UNIT_WAF),
            config=config,
            registry=registry,
            env=global_env,
            cross_region_references=True,
        )
    )
    cloudfront = declared(
        CloudfrontStack(
            app,
            stack_name(config, constants.UNIT_CLOUDFRONT),
            config=config,
            registry=registry,
            env=env,
            cross_region_references=True,
        )
    )
    cloudfront.add_stack_dependency(waf)

    cw_alarms = declared(
        CloudwatchAlarmsStack(
            app,
            stack_name(config, constants.UNIT_CW_ALARMS),
            config=config,
            load_balancer=ecs.load_balancer,
            cluster=ecs.cluster,
            deployments=ecs.deployments,
            env=env,
        )
    )
    cw_alarms.add_stack_dependency(ecs)

    logger.info("Declared hosting units", environment=config.environment, exports=registry.names())
    return HostingUnits(
        registry=registry,
        budget=budget,
        cloudtrail=cloudtrail,
        network=network,
        security_groups=security_groups,
        ecs=ecs,
        ecs_scheduler=ecs_scheduler,
        waf=waf,
        cloudfront=cloudfront,
        cw_alarms=cw_alarms,
    )
