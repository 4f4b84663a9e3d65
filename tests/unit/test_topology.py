import pytest

from common.config import NetworkConfig, SubnetConfig
from common.errors import TopologyError
from networking.topology import SubnetRole, plan_topology


def network(
    private: list[tuple[str, str]],
    public: list[tuple[str, str]],
    vpc_cidr: str = "10.0.0.0/16",
) -> NetworkConfig:
    return NetworkConfig(
        vpc_cidr=vpc_cidr,
        private_subnets=tuple(SubnetConfig(zone, cidr) for zone, cidr in private),
        public_subnets=tuple(SubnetConfig(zone, cidr) for zone, cidr in public),
    )


def test_plan_names_every_network_resource():
    plan = plan_topology(
        network([("a", "10.0.1.0/24")], [("a", "10.0.2.0/24")]), "eu-west-1", "dev-shop"
    )

    assert plan.vpc_name == "dev-shop"
    assert plan.vpc_export_name == "dev-shop-vpc-id"
    assert plan.internet_gateway_name == "dev-shop-igw"
    assert plan.nat_gateway_name == "dev-shop-nat-a"

    private, public = plan.private_subnets[0], plan.public_subnets[0]
    assert private.name == "dev-shop-pvt-a"
    assert private.availability_zone == "eu-west-1a"
    assert private.role is SubnetRole.PRIVATE
    assert private.route_name == "dev-shop-pvt-a-rt"
    assert private.subnet_export_name == "dev-shop-pvt-a-subnet-id"
    assert public.name == "dev-shop-pub-a"
    assert public.role is SubnetRole.PUBLIC


def test_nat_is_anchored_to_first_public_subnet():
    plan = plan_topology(
        network(
            [("a", "10.0.1.0/24"), ("b", "10.0.3.0/24")],
            [("b", "10.0.4.0/24"), ("a", "10.0.2.0/24")],
        ),
        "eu-west-1",
        "dev-shop",
    )
    assert plan.nat_subnet.name == "dev-shop-pub-b"
    assert [subnet.name for subnet in plan.subnets] == [
        "dev-shop-pvt-a",
        "dev-shop-pvt-b",
        "dev-shop-pub-b",
        "dev-shop-pub-a",
    ]


def test_overlapping_subnets_are_rejected():
    with pytest.raises(TopologyError, match="overlaps"):
        plan_topology(
            network([("a", "10.0.2.128/25")], [("a", "10.0.2.0/24")]), "eu-west-1", "dev-shop"
        )


def test_subnet_outside_vpc_is_rejected():
    with pytest.raises(TopologyError, match="outside the VPC block"):
        plan_topology(
            network([("a", "10.1.1.0/24")], [("a", "10.0.2.0/24")]), "eu-west-1", "dev-shop"
        )


def test_missing_public_subnet_is_rejected():
    with pytest.raises(TopologyError, match="NAT requires at least one public subnet"):
        plan_topology(network([("a", "10.0.1.0/24")], []), "eu-west-1", "dev-shop")


def test_missing_private_subnet_is_rejected():
    with pytest.raises(TopologyError, match="private subnet"):
        plan_topology(network([], [("a", "10.0.2.0/24")]), "eu-west-1", "dev-shop")


def test_duplicate_zone_within_a_role_is_rejected():
    with pytest.raises(TopologyError, match="zone 'a'"):
        plan_topology(
            network([("a", "10.0.1.0/24"), ("a", "10.0.3.0/24")], [("a", "10.0.2.0/24")]),
            "eu-west-1",
            "dev-shop",
        )


MALFORMED_BLOCKS = [
    ("10.0.0.0/33", "10.0.1.0/24"),
    ("10.0.0.0/16", "10.0.1.1/24"),
    ("not-a-cidr", "10.0.1.0/24"),
]


@pytest.mark.parametrize("vpc_cidr,private_cidr", MALFORMED_BLOCKS)
def test_malformed_blocks_are_rejected(vpc_cidr: str, private_cidr: str):
    with pytest.raises(TopologyError, match="not a valid IPv4 block"):
        plan_topology(
            network([("a", private_cidr)], [("a", "10.0.2.0/24")], vpc_cidr=vpc_cidr),
            "eu-west-1",
            "dev-shop",
        )
