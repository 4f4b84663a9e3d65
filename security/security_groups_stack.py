from attrs import define
from aws_cdk import Stack, aws_ec2 as ec2
from constructs import Construct

from common.config import BuildConfig
from common.exports import ExportRegistry
from common.stack_context import StackContext
from networking.references import import_vpc, network_plan


@define(slots=True, frozen=True)
class ServiceSecurityGroup:
    service_name: str
    security_group: ec2.SecurityGroup


@define(slots=True, frozen=True)
class SecurityPerimeter:
    alb_group: ec2.SecurityGroup
    service_groups: tuple[ServiceSecurityGroup, ...]


class SecurityGroupsStack(Stack):
    """One security group for the load balancer and one per ECS service.

    No ingress rules are authored here. The load balancer to service rule is
    added by ``EcsStack`` when each service is registered with its target
    group.
    """

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
        self.vpc = import_vpc(self, registry, network_plan(config))

        self.alb_sg = self.create_security_group(
            self.context.build_resource_name("alb"),
            "Security group for the application load balancer",
        )
        self.ecs_services_sg: list[ec2.SecurityGroup] = [
            self.create_security_group(
                self.context.build_resource_name("ecs", service.name),
                f"Security group for the {service.name} ECS service",
            )
            for service in config.services
        ]

        self.perimeter = SecurityPerimeter(
            alb_group=self.alb_sg,
            service_groups=tuple(
                ServiceSecurityGroup(service_name=service.name, security_group=group)
                for service, group in zip(config.services, self.ecs_services_sg)
            ),
        )

    def create_security_group(self, name: str, description: str) -> ec2.SecurityGroup:
        return ec2.SecurityGroup(
            self,
            name,
            security_group_name=name,
            vpc=self.vpc,
            allow_all_outbound=True,
            description=description,
        )
