from pathlib import Path

from aws_cdk import (
    Duration,
    Stack,
    aws_events as events,
    aws_events_targets as targets,
    aws_iam as iam,
    aws_lambda as _lambda,
    aws_logs as logs,
)
from constructs import Construct

import common.constants as constants
from common.config import BuildConfig
from common.exports import ExportRegistry
from common.stack_context import StackContext
from compute.ecs_stack import cluster_export_name, service_export_name

LAMBDAS_DIR = Path(__file__).resolve().parent.parent / constants.LAMBDAS_SRC


class EcsSchedulerStack(Stack):
    """Start and stop every ECS service of the environment on a cron schedule."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: BuildConfig,
        registry: ExportRegistry,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.context = StackContext(scope=self, config=config)

        self.cluster_name = registry.get(cluster_export_name(self.context.prefix))
        self.service_names = [
            registry.get(service_export_name(self.context.prefix, service.name))
            for service in config.services
        ]

        self.code = _lambda.Code.from_asset(
            str(LAMBDAS_DIR), exclude=["__pycache__", "*.pyc"]
        )
        self.layers = [
            _lambda.LayerVersion.from_layer_version_arn(
                self,
                self.context.build_resource_name("powertools-layer"),
                layer_version_arn=self.context.build_power_tools_layer_arn(),
            ),
        ]
        self.role = self._build_role()

        self.start_function = self._build_scheduler_lambda(
            "start", constants.SCHEDULER_START_DESIRED_COUNT
        )
        self.start_rule = self._build_rule(
            "start", config.stacks.schedule.start, self.start_function
        )

        self.stop_function = self._build_scheduler_lambda(
            "stop", constants.SCHEDULER_STOP_DESIRED_COUNT
        )
        self.stop_rule = self._build_rule(
            "stop", config.stacks.schedule.stop, self.stop_function
        )

    # Resource creation

    def _build_role(self) -> iam.Role:
        role_name = self.context.build_resource_name("lambda", "ecs", "scheduler")
        role = iam.Role(
            self,
            role_name,
            role_name=role_name,
            assumed_by=iam.ServicePrincipal("lambda.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "service-role/AWSLambdaVPCAccessExecutionRole"
                ),
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "service-role/AWSLambdaBasicExecutionRole"
                ),
            ],
        )
        role.add_to_principal_policy(
            iam.PolicyStatement(
                actions=[
                    "ecs:DescribeClusters",
                    "ecs:DescribeServices",
                    "ecs:UpdateService",
                ],
                resources=["*"],
            )
        )
        return role

    def _build_scheduler_lambda(self, action: str, desired_count: int) -> _lambda.Function:
        function_name = self.context.build_resource_name("ecs", action)
        log_group = self.context.build_log_group(
            f"/aws/lambda/{function_name}", retention=logs.RetentionDays.ONE_WEEK
        )
        return _lambda.Function(
            self,
            f"{function_name}-lambda",
            function_name=function_name,
            runtime=constants.PYTHON_RUNTIME,
            architecture=constants.DEFAULT_ARCHITECTURE,
            handler=constants.SCHEDULER_HANDLER,
            code=self.code,
            layers=self.layers,
            role=self.role,
            log_group=log_group,
            timeout=Duration.seconds(constants.SCHEDULER_TIMEOUT_SECONDS),
            description=f"Sets the desired count of every ECS service to {desired_count}",
            environment={
                "LOG_LEVEL": "INFO",
                "REGION": self.context.config.region,
                "CLUSTER_NAME": self.cluster_name,
                "SERVICES": ",".join(self.service_names),
                "DESIRED_COUNT": str(desired_count),
            },
        )

    def _build_rule(
        self, action: str, expression: str, function: _lambda.IFunction
    ) -> events.Rule:
        rule_name = self.context.build_resource_name("ecs", action)
        return events.Rule(
            self,
            f"{rule_name}-rule",
            rule_name=rule_name,
            schedule=events.Schedule.expression(f"cron({expression})"),
            targets=[targets.LambdaFunction(function)],
        )
