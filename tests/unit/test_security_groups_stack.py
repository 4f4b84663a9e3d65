import pytest
from aws_cdk.assertions import Match, Template

from hosting_app.hosting_app import HostingUnits
from stack_test_helpers import build_units, get_resource_id_by_properties, two_service_config

RESOURCES = [
    ("AWS::EC2::SecurityGroup", 2),
    ("AWS::EC2::SecurityGroupIngress", 1),
]


@pytest.mark.parametrize("resource_type,expected", RESOURCES)
def test_resource_count(security_groups_template: Template, resource_type: str, expected: int):
    security_groups_template.resource_count_is(resource_type, expected)


GROUP_NAMES = ["dev-shop-alb", "dev-shop-ecs-web"]


@pytest.mark.parametrize("group_name", GROUP_NAMES)
def test_security_group_names(security_groups_template: Template, group_name: str):
    security_groups_template.has_resource_properties(
        "AWS::EC2::SecurityGroup",
        {
            "GroupName": group_name,
            "VpcId": Match.any_value(),
            "SecurityGroupEgress": Match.array_with(
                [Match.object_like({"CidrIp": "0.0.0.0/0", "IpProtocol": "-1"})]
            ),
        },
    )


def test_perimeter_is_aligned_with_services(units: HostingUnits):
    perimeter = units.security_groups.perimeter
    assert perimeter.alb_group is units.security_groups.alb_sg
    assert [group.service_name for group in perimeter.service_groups] == ["web"]


def test_load_balancer_may_reach_service_on_container_port(security_groups_template: Template):
    alb_id = get_resource_id_by_properties(
        security_groups_template, "AWS::EC2::SecurityGroup", {"GroupName": "dev-shop-alb"}
    )
    service_id = get_resource_id_by_properties(
        security_groups_template, "AWS::EC2::SecurityGroup", {"GroupName": "dev-shop-ecs-web"}
    )
    security_groups_template.has_resource_properties(
        "AWS::EC2::SecurityGroupIngress",
        {
            "IpProtocol": "tcp",
            "FromPort": 8080,
            "ToPort": 8080,
            "GroupId": {"Fn::GetAtt": [service_id, "GroupId"]},
            "SourceSecurityGroupId": {"Fn::GetAtt": [alb_id, "GroupId"]},
            "Description": "Load balancer to web on 8080",
        },
    )


def test_one_group_per_service():
    units = build_units(two_service_config())
    perimeter = units.security_groups.perimeter

    assert [group.service_name for group in perimeter.service_groups] == ["web", "api"]
    assert len(units.security_groups.ecs_services_sg) == 2
    template = Template.from_stack(units.security_groups)
    template.resource_count_is("AWS::EC2::SecurityGroup", 3)
    template.resource_count_is("AWS::EC2::SecurityGroupIngress", 2)
