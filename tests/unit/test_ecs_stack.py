import json

import pytest
from aws_cdk.assertions import Match, Template

from common.config import ServiceConfig
from common.errors import ConfigurationError, TopologyError
from compute.ecs_stack import validate_service_layout
from hosting_app.hosting_app import HostingUnits
from security.security_groups_stack import SecurityPerimeter, ServiceSecurityGroup
from stack_test_helpers import (
    LogGroupTestCase,
    build_units,
    find_resources_by_type,
    get_resource_id_by_properties,
    get_single_resource_id,
    two_service_config,
)

# ----------------------------- Resource count smoke test ------------------------

RESOURCES = [
    ("AWS::ElasticLoadBalancingV2::LoadBalancer", 1),
    ("AWS::ElasticLoadBalancingV2::TargetGroup", 1),
    ("AWS::ElasticLoadBalancingV2::Listener", 1),
    ("AWS::ECS::Cluster", 1),
    ("AWS::ECS::TaskDefinition", 1),
    ("AWS::ECS::Service", 1),
    ("AWS::ECR::Repository", 1),
    ("AWS::Logs::LogGroup", 1),
    ("AWS::IAM::Role", 2),
]


@pytest.mark.parametrize("resource_type,expected", RESOURCES)
def test_resource_count(ecs_template: Template, resource_type: str, expected: int):
    ecs_template.resource_count_is(resource_type, expected)


# -------------------------- Load balancing --------------------------


def test_load_balancer_is_internal(ecs_template: Template):
    ecs_template.has_resource_properties(
        "AWS::ElasticLoadBalancingV2::LoadBalancer",
        {"Name": "dev-shop-alb", "Scheme": "internal", "Type": "application"},
    )


def test_target_group_health_check(ecs_template: Template):
    ecs_template.has_resource_properties(
        "AWS::ElasticLoadBalancingV2::TargetGroup",
        {
            "Name": "web-8080-tg",
            "Port": 8080,
            "Protocol": "HTTP",
            "TargetType": "ip",
            "HealthCheckEnabled": True,
            "HealthCheckPath": "/health",
            "HealthCheckPort": "8080",
            "HealthCheckTimeoutSeconds": 20,
            "UnhealthyThresholdCount": 5,
        },
    )


def test_listener_forwards_to_its_target_group(ecs_template: Template):
    target_group_id = get_single_resource_id(
        find_resources_by_type(ecs_template, "AWS::ElasticLoadBalancingV2::TargetGroup")
    )
    ecs_template.has_resource_properties(
        "AWS::ElasticLoadBalancingV2::Listener",
        {
            "Port": 8080,
            "Protocol": "HTTP",
            "DefaultActions": [
                {"Type": "forward", "TargetGroupArn": {"Ref": target_group_id}}
            ],
        },
    )


# -------------------------- Service --------------------------


def test_service_starts_with_zero_tasks(ecs_template: Template):
    ecs_template.has_resource_properties(
        "AWS::ECS::Service",
        {
            "ServiceName": "dev-shop-web",
            "DesiredCount": 0,
            "LaunchType": "FARGATE",
            "EnableExecuteCommand": True,
        },
    )


def test_service_is_registered_with_its_target_group(ecs_template: Template):
    target_group_id = get_single_resource_id(
        find_resources_by_type(ecs_template, "AWS::ElasticLoadBalancingV2::TargetGroup")
    )
    ecs_template.has_resource_properties(
        "AWS::ECS::Service",
        {
            "LoadBalancers": [
                {
                    "ContainerName": "dev-shop-web-8080",
                    "ContainerPort": 8080,
                    "TargetGroupArn": {"Ref": target_group_id},
                }
            ],
            "NetworkConfiguration": {
                "AwsvpcConfiguration": Match.object_like({"AssignPublicIp": "DISABLED"})
            },
        },
    )


def test_cluster_is_named_after_prefix(ecs_template: Template):
    ecs_template.has_resource_properties("AWS::ECS::Cluster", {"ClusterName": "dev-shop"})


def test_task_has_a_single_container(ecs_template: Template):
    log_group_id = get_resource_id_by_properties(
        ecs_template, "AWS::Logs::LogGroup", {"LogGroupName": "dev-shop-ecs-web"}
    )
    ecs_template.has_resource_properties(
        "AWS::ECS::TaskDefinition",
        {
            "Family": "dev-shop-web-task",
            "Cpu": "256",
            "Memory": "512",
            "RequiresCompatibilities": ["FARGATE"],
            "ContainerDefinitions": [
                Match.object_like(
                    {
                        "Name": "dev-shop-web-8080",
                        "PortMappings": [{"ContainerPort": 8080, "Protocol": "tcp"}],
                        "Environment": [{"Name": "STAGE", "Value": "dev"}],
                        "LinuxParameters": Match.object_like({"InitProcessEnabled": True}),
                        "LogConfiguration": {
                            "LogDriver": "awslogs",
                            "Options": Match.object_like(
                                {
                                    "awslogs-group": {"Ref": log_group_id},
                                    "awslogs-stream-prefix": "log",
                                }
                            ),
                        },
                    }
                )
            ],
        },
    )


def test_image_is_tagged_with_environment(ecs_template: Template):
    task_definitions = find_resources_by_type(ecs_template, "AWS::ECS::TaskDefinition")
    task = task_definitions[get_single_resource_id(task_definitions)]
    image = task["Properties"]["ContainerDefinitions"][0]["Image"]
    assert ":dev" in json.dumps(image)


def test_repository(ecs_template: Template):
    ecs_template.has_resource_properties(
        "AWS::ECR::Repository",
        {
            "RepositoryName": "dev-shop-web-docker",
            "LifecyclePolicy": {
                "LifecyclePolicyText": Match.string_like_regexp('"countNumber":10'),
            },
        },
    )


def test_repository_is_encrypted_with_aes256(ecs_template: Template):
    repositories = find_resources_by_type(ecs_template, "AWS::ECR::Repository")
    props = repositories[get_single_resource_id(repositories, "ECR repository")]["Properties"]
    # AES256 is the service default and newer CDK releases omit it from the template
    encryption = props.get("EncryptionConfiguration", {"EncryptionType": "AES256"})
    assert encryption == {"EncryptionType": "AES256"}


LOG_GROUPS = [LogGroupTestCase(id="service", log_group_name="dev-shop-ecs-web", retention_days=14)]


@pytest.mark.parametrize("case", LOG_GROUPS, ids=lambda case: case.id)
def test_log_group_retention(ecs_template: Template, case: LogGroupTestCase):
    ecs_template.has_resource_properties(
        "AWS::Logs::LogGroup",
        {"LogGroupName": case.log_group_name, "RetentionInDays": case.retention_days},
    )


ROLE_NAMES = ["dev-shop-web-exec", "dev-shop-web-task"]


@pytest.mark.parametrize("role_name", ROLE_NAMES)
def test_roles_are_assumed_by_ecs_tasks(ecs_template: Template, role_name: str):
    ecs_template.has_resource_properties(
        "AWS::IAM::Role",
        {
            "RoleName": role_name,
            "AssumeRolePolicyDocument": Match.object_like(
                {
                    "Statement": Match.array_with(
                        [
                            Match.object_like(
                                {"Principal": {"Service": "ecs-tasks.amazonaws.com"}}
                            )
                        ]
                    )
                }
            ),
        },
    )


def test_task_role_allows_ecs_exec(ecs_template: Template):
    ecs_template.has_resource_properties(
        "AWS::IAM::Policy",
        {
            "PolicyDocument": {
                "Statement": Match.array_with(
                    [
                        Match.object_like(
                            {
                                "Action": Match.array_with(["ssmmessages:CreateControlChannel"]),
                                "Effect": "Allow",
                            }
                        )
                    ]
                )
            }
        },
    )


def test_cluster_and_services_are_registered(units: HostingUnits):
    assert "dev-shop-cluster-name" in units.registry
    assert "dev-shop-web-service-name" in units.registry


# -------------------------- Index alignment --------------------------


def test_collections_follow_service_list():
    units = build_units(two_service_config())
    ecs = units.ecs
    names = [deployment.service_config.name for deployment in ecs.deployments]

    assert names == ["web", "api"]
    assert len(ecs.target_groups) == len(ecs.tasks) == len(ecs.services) == 2
    for deployment, group in zip(ecs.deployments, units.security_groups.perimeter.service_groups):
        assert deployment.security_group is group.security_group
        assert deployment.ingress_port.to_string() == str(deployment.service_config.port)

    template = Template.from_stack(ecs)
    template.resource_count_is("AWS::ElasticLoadBalancingV2::Listener", 2)
    template.has_resource_properties(
        "AWS::ElasticLoadBalancingV2::TargetGroup", {"Name": "api-8081-tg", "Port": 8081}
    )


def web(port: int = 8080) -> ServiceConfig:
    return ServiceConfig(name="web", cpu=256, memory=512, port=port, health_check_path="/")


def api(port: int = 8081) -> ServiceConfig:
    return ServiceConfig(name="api", cpu=256, memory=512, port=port, health_check_path="/")


def perimeter(*names: str) -> SecurityPerimeter:
    return SecurityPerimeter(
        alb_group=None,
        service_groups=tuple(
            ServiceSecurityGroup(service_name=name, security_group=None) for name in names
        ),
    )


def test_layout_rejects_missing_service_group():
    with pytest.raises(TopologyError, match="2 services declared"):
        validate_service_layout((web(), api()), perimeter("web"))


def test_layout_rejects_misaligned_service_groups():
    with pytest.raises(TopologyError, match="expected 'web'"):
        validate_service_layout((web(), api()), perimeter("api", "web"))


def test_layout_rejects_port_collision():
    with pytest.raises(ConfigurationError, match="listener port 8080"):
        validate_service_layout((web(), api(port=8080)), perimeter("web", "api"))
