from attrs import define
from aws_cdk import (
    Duration,
    RemovalPolicy,
    Stack,
    aws_ec2 as ec2,
    aws_ecr as ecr,
    aws_ecs as ecs,
    aws_elasticloadbalancingv2 as elbv2,
    aws_iam as iam,
    aws_logs as logs,
)
from constructs import Construct

from common import constants
from common.config import BuildConfig, ServiceConfig
from common.errors import ConfigurationError, TopologyError
from common.exports import ExportRegistry
from common.stack_context import StackContext
from networking.references import import_vpc, network_plan
from security.security_groups_stack import SecurityPerimeter

ECS_EXEC_ACTIONS = [
    "ssmmessages:CreateControlChannel",
    "ssmmessages:CreateDataChannel",
    "ssmmessages:OpenControlChannel",
    "ssmmessages:OpenDataChannel",
]


def cluster_export_name(prefix: str) -> str:
    return f"{prefix}-cluster-name"


def service_export_name(prefix: str, service_name: str) -> str:
    return f"{prefix}-{service_name}-service-name"


@define(slots=True, frozen=True, kw_only=True)
class ServiceDeployment:
    """Everything derived from one entry of the service list."""

    service_config: ServiceConfig
    security_group: ec2.ISecurityGroup
    target_group: elbv2.ApplicationTargetGroup
    listener: elbv2.ApplicationListener
    log_group: logs.LogGroup
    repository: ecr.Repository
    task_definition: ecs.FargateTaskDefinition
    service: ecs.FargateService
    ingress_port: ec2.Port


class EcsStack(Stack):
    """Internal ALB, one shared Fargate cluster and one deployment per configured service."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: BuildConfig,
        registry: ExportRegistry,
        perimeter: SecurityPerimeter,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.context = StackContext(scope=self, config=config)
        self.registry = registry
        self.environment_name = config.environment

        validate_service_layout(config.services, perimeter)

        self.vpc = import_vpc(self, registry, network_plan(config))
        self.private_subnets = ec2.SubnetSelection(subnets=self.vpc.private_subnets)

        self.load_balancer = self._build_load_balancer(perimeter.alb_group)
        self.cluster = self._build_cluster()

        self.deployments: tuple[ServiceDeployment, ...] = tuple(
            self._build_service_deployment(service_config, group.security_group)
            for service_config, group in zip(config.services, perimeter.service_groups)
        )

    # Collections view, index aligned with the configured service list

    @property
    def target_groups(self) -> list[elbv2.ApplicationTargetGroup]:
        return [deployment.target_group for deployment in self.deployments]

    @property
    def tasks(self) -> list[ecs.FargateTaskDefinition]:
        return [deployment.task_definition for deployment in self.deployments]

    @property
    def services(self) -> list[ecs.FargateService]:
        return [deployment.service for deployment in self.deployments]

    # Resource creation

    def _build_load_balancer(
        self, security_group: ec2.ISecurityGroup
    ) -> elbv2.ApplicationLoadBalancer:
        name = self.context.build_resource_name("alb")
        return elbv2.ApplicationLoadBalancer(
            self,
            name,
            load_balancer_name=name,
            vpc=self.vpc,
            internet_facing=False,
            security_group=security_group,
            vpc_subnets=self.private_subnets,
        )

    def _build_cluster(self) -> ecs.Cluster:
        cluster_name = self.context.prefix
        cluster = ecs.Cluster(
            self,
            f"{cluster_name}-cluster",
            cluster_name=cluster_name,
            vpc=self.vpc,
        )
        self.registry.put(cluster_export_name(self.context.prefix), cluster.cluster_name)
        return cluster

    def _build_target_group(self, service_config: ServiceConfig) -> elbv2.ApplicationTargetGroup:
        return elbv2.ApplicationTargetGroup(
            self,
            service_config.target_group_name,
            target_group_name=service_config.target_group_name,
            vpc=self.vpc,
            target_type=elbv2.TargetType.IP,
            protocol=elbv2.ApplicationProtocol.HTTP,
            port=service_config.port,
            health_check=elbv2.HealthCheck(
                enabled=True,
                path=service_config.health_check_path,
                port=str(service_config.port),
                timeout=Duration.seconds(constants.HEALTH_CHECK_TIMEOUT_SECONDS),
                unhealthy_threshold_count=constants.HEALTH_CHECK_UNHEALTHY_THRESHOLD,
            ),
        )

    def _build_repository(self, service_name: str) -> ecr.Repository:
        repository_name = f"{service_name}-docker"
        return ecr.Repository(
            self,
            repository_name,
            repository_name=repository_name,
            encryption=ecr.RepositoryEncryption.AES_256,
            removal_policy=RemovalPolicy.DESTROY,
            lifecycle_rules=[ecr.LifecycleRule(max_image_count=constants.ECR_MAX_IMAGE_COUNT)],
        )

    def _build_execution_role(self, service_name: str) -> iam.Role:
        role_name = f"{service_name}-exec"
        return iam.Role(
            self,
            role_name,
            role_name=role_name,
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "service-role/AmazonECSTaskExecutionRolePolicy"
                )
            ],
        )

    def _build_task_role(self, service_name: str) -> iam.Role:
        role_name = f"{service_name}-task"
        task_role = iam.Role(
            self,
            f"{role_name}-role",
            role_name=role_name,
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "service-role/AmazonEC2ContainerServiceRole"
                ),
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "AmazonEC2ContainerRegistryFullAccess"
                ),
            ],
        )
        # ECS Exec
        task_role.add_to_principal_policy(
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=ECS_EXEC_ACTIONS,
                resources=["*"],
            )
        )
        return task_role

    def _build_task_definition(
        self,
        service_config: ServiceConfig,
        service_name: str,
        repository: ecr.IRepository,
        log_group: logs.ILogGroup,
    ) -> ecs.FargateTaskDefinition:
        task_name = f"{service_name}-task"
        task_definition = ecs.FargateTaskDefinition(
            self,
            f"{task_name}-definition",
            family=task_name,
            execution_role=self._build_execution_role(service_name),
            task_role=self._build_task_role(service_name),
            cpu=service_config.cpu,
            memory_limit_mib=service_config.memory,
        )

        container_name = f"{service_name}-{service_config.port}"
        task_definition.add_container(
            container_name,
            container_name=container_name,
            image=ecs.ContainerImage.from_ecr_repository(repository, self.environment_name),
            port_mappings=[
                ecs.PortMapping(container_port=service_config.port, protocol=ecs.Protocol.TCP)
            ],
            environment=dict(service_config.environment),
            logging=ecs.LogDrivers.aws_logs(
                stream_prefix=constants.ECS_LOG_STREAM_PREFIX,
                log_group=log_group,
            ),
            linux_parameters=ecs.LinuxParameters(
                self, f"{container_name}-params", init_process_enabled=True
            ),
        )
        return task_definition

    def _build_service_deployment(
        self, service_config: ServiceConfig, security_group: ec2.ISecurityGroup
    ) -> ServiceDeployment:
        service_name = f"{self.context.prefix}-{service_config.name}"

        target_group = self._build_target_group(service_config)
        log_group = self.context.build_log_group(
            self.context.build_resource_name("ecs", service_config.name)
        )
        repository = self._build_repository(service_name)
        task_definition = self._build_task_definition(
            service_config, service_name, repository, log_group
        )

        # Desired count starts at zero so the first deploy succeeds before any
        # image is pushed. It is raised by the start schedule or an operator.
        service = ecs.FargateService(
            self,
            service_name,
            service_name=service_name,
            cluster=self.cluster,
            task_definition=task_definition,
            security_groups=[security_group],
            vpc_subnets=self.private_subnets,
            enable_execute_command=True,
            desired_count=constants.BOOTSTRAP_DESIRED_COUNT,
        )
        self.registry.put(
            service_export_name(self.context.prefix, service_config.name), service.service_name
        )

        listener, ingress_port = self._register_target(service_config, target_group, service)
        return ServiceDeployment(
            service_config=service_config,
            security_group=security_group,
            target_group=target_group,
            listener=listener,
            log_group=log_group,
            repository=repository,
            task_definition=task_definition,
            service=service,
            ingress_port=ingress_port,
        )

    def _register_target(
        self,
        service_config: ServiceConfig,
        target_group: elbv2.ApplicationTargetGroup,
        service: ecs.FargateService,
    ) -> tuple[elbv2.ApplicationListener, ec2.Port]:
        """Attach ``service`` to its target group behind a dedicated listener.

        Registration opens the service security group to the load balancer
        security group on the container port. The rule is authored here
        explicitly; the target group attachment resolves to the same rule.
        """
        ingress_port = ec2.Port.tcp(service_config.port)
        service.connections.allow_from(
            self.load_balancer,
            ingress_port,
            f"Load balancer to {service_config.name} on {service_config.port}",
        )

        listener = elbv2.ApplicationListener(
            self,
            f"{self.load_balancer.node.id}-{service_config.name}-http",
            load_balancer=self.load_balancer,
            port=service_config.port,
            protocol=elbv2.ApplicationProtocol.HTTP,
            default_target_groups=[target_group],
        )
        target_group.add_target(service)
        return listener, ingress_port


def validate_service_layout(
    services: tuple[ServiceConfig, ...], perimeter: SecurityPerimeter
) -> None:
    """Fail fast when the derived collections cannot line up with the service list."""
    if len(perimeter.service_groups) != len(services):
        raise TopologyError(
            f"{len(services)} services declared but the security perimeter holds "
            f"{len(perimeter.service_groups)} service groups"
        )
    for index, (service_config, group) in enumerate(zip(services, perimeter.service_groups)):
        if group.service_name != service_config.name:
            raise TopologyError(
                f"service group {index} belongs to '{group.service_name}', expected '{service_config.name}'"
            )

    ports: dict[int, str] = {}
    for service_config in services:
        if service_config.port in ports:
            raise ConfigurationError(
                f"listener port {service_config.port} is used by both '{ports[service_config.port]}' and '{service_config.name}'"
            )
        ports[service_config.port] = service_config.name
