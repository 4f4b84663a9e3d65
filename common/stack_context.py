from typing import Optional

from attrs import define, field
from aws_cdk import RemovalPolicy, Stack, aws_logs as logs

import common.constants as constants
from common.config import BuildConfig


@define(slots=True, frozen=True)
class StackContext:
    scope: Stack
    config: BuildConfig = field(
        metadata={"description": "Validated configuration record for the target environment"},
    )

    @property
    def prefix(self) -> str:
        return self.config.prefix

    @property
    def aws_region(self) -> str:
        return Stack.of(self.scope).region

    # ---------- layers ----------
    def build_power_tools_layer_arn(self) -> str:
        region = self.aws_region
        runtime = constants.POWER_TOOLS_PYTHON_RUNTIME
        version = constants.POWER_TOOLS_VERSION
        lambda_layer_account = constants.POWER_TOOLS_LAMBDA_LAYER_ACCOUNT
        power_tools_type = constants.POWER_TOOLS_LAMBDA_LAYER_NAME
        architecture = constants.POWER_TOOLS_ARCHITECTURE
        if not region:
            raise ValueError(
                "AWS region is not set, unable to resolve Power Tools Layer ARN"
            )
        return constants.POWER_TOOLS_LAYER.format(
            region=region,
            runtime=runtime,
            version=version,
            lambda_layer_account=lambda_layer_account,
            power_tools_type=power_tools_type,
            architecture=architecture,
        )

    # ---------- naming ----------
    def build_resource_name(self, *parts: str) -> str:
        """Build a resource name under the environment prefix.

        Examples:
            - build_resource_name("alb"): dev-shop-alb
            - build_resource_name("pvt", "a"): dev-shop-pvt-a
        """
        return "-".join((self.prefix, *parts)).lower()

    def build_log_group(
        self,
        log_group_name: str,
        retention: logs.RetentionDays = logs.RetentionDays.TWO_WEEKS,
        construct_id: Optional[str] = None,
    ) -> logs.LogGroup:
        return logs.LogGroup(
            self.scope,
            construct_id or log_group_name.strip("/").replace("/", "-"),
            log_group_name=log_group_name,
            removal_policy=RemovalPolicy.DESTROY,
            retention=retention,
        )
