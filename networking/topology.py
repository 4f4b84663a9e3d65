"""Address layout planning for the hosting VPC.

``plan_topology`` turns the network section of the configuration record into
a fully named, validated plan. It runs before any construct is created, so a
bad layout never produces a partial resource graph.
"""
import ipaddress
from enum import Enum
from itertools import combinations
from typing import Iterable

from attrs import define

from common.config import NetworkConfig, SubnetConfig
from common.errors import TopologyError


class SubnetRole(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"

    @property
    def short_name(self) -> str:
        return "pub" if self is SubnetRole.PUBLIC else "pvt"


@define(slots=True, frozen=True)
class AddressBlock:
    cidr: str
    zone: str
    role: SubnetRole

    @property
    def network(self) -> ipaddress.IPv4Network:
        return ipaddress.IPv4Network(self.cidr)


@define(slots=True, frozen=True)
class SubnetPlan:
    name: str
    availability_zone: str
    block: AddressBlock

    @property
    def zone(self) -> str:
        return self.block.zone

    @property
    def role(self) -> SubnetRole:
        return self.block.role

    @property
    def cidr(self) -> str:
        return self.block.cidr

    @property
    def route_name(self) -> str:
        return f"{self.name}-rt"

    @property
    def subnet_export_name(self) -> str:
        return f"{self.name}-subnet-id"

    @property
    def route_table_export_name(self) -> str:
        return f"{self.name}-route-table-id"


@define(slots=True, frozen=True)
class NetworkPlan:
    vpc_name: str
    vpc_cidr: str
    private_subnets: tuple[SubnetPlan, ...]
    public_subnets: tuple[SubnetPlan, ...]

    @property
    def vpc_export_name(self) -> str:
        return f"{self.vpc_name}-vpc-id"

    @property
    def internet_gateway_name(self) -> str:
        return f"{self.vpc_name}-igw"

    @property
    def nat_subnet(self) -> SubnetPlan:
        """Public subnet hosting the single NAT gateway (the first declared)."""
        return self.public_subnets[0]

    @property
    def nat_gateway_name(self) -> str:
        return f"{self.vpc_name}-nat-{self.nat_subnet.zone}"

    @property
    def nat_eip_name(self) -> str:
        return f"{self.vpc_name}-nat-eip-{self.nat_subnet.zone}"

    @property
    def subnets(self) -> tuple[SubnetPlan, ...]:
        return self.private_subnets + self.public_subnets


def parse_block(cidr: str, label: str) -> ipaddress.IPv4Network:
    try:
        return ipaddress.IPv4Network(cidr)
    except (TypeError, ValueError) as e:
        raise TopologyError(f"{label} '{cidr}' is not a valid IPv4 block: {e}") from e


def _plan_subnets(
    prefix: str,
    region: str,
    role: SubnetRole,
    subnets: Iterable[SubnetConfig],
    vpc_block: ipaddress.IPv4Network,
) -> tuple[SubnetPlan, ...]:
    plans = []
    zones: set[str] = set()
    for subnet in subnets:
        label = f"{role.value} subnet {subnet.zone}"
        block = parse_block(subnet.cidr, label)
        if not block.subnet_of(vpc_block):
            raise TopologyError(f"{label} '{subnet.cidr}' is outside the VPC block '{vpc_block}'")
        if subnet.zone in zones:
            raise TopologyError(f"more than one {role.value} subnet declared in zone '{subnet.zone}'")
        zones.add(subnet.zone)
        plans.append(
            SubnetPlan(
                name=f"{prefix}-{role.short_name}-{subnet.zone}",
                availability_zone=f"{region}{subnet.zone}",
                block=AddressBlock(cidr=str(block), zone=subnet.zone, role=role),
            )
        )
    return tuple(plans)


def _ensure_disjoint(subnets: tuple[SubnetPlan, ...]) -> None:
    for first, second in combinations(subnets, 2):
        if first.block.network.overlaps(second.block.network):
            raise TopologyError(
                f"{first.name} '{first.cidr}' overlaps {second.name} '{second.cidr}'"
            )


def plan_topology(network: NetworkConfig, region: str, prefix: str) -> NetworkPlan:
    """Validate the address layout and name every network resource.

    Raises TopologyError if a block is malformed, falls outside the VPC
    block, overlaps a sibling, if no public subnet is available to anchor
    the NAT gateway, or if there is no private subnet to place compute in.
    """
    vpc_block = parse_block(network.vpc_cidr, "VPC block")
    private_subnets = _plan_subnets(
        prefix, region, SubnetRole.PRIVATE, network.private_subnets, vpc_block
    )
    public_subnets = _plan_subnets(
        prefix, region, SubnetRole.PUBLIC, network.public_subnets, vpc_block
    )
    _ensure_disjoint(private_subnets + public_subnets)

    # No NAT instance or per-AZ NAT fallback
    if not public_subnets:
        raise TopologyError("NAT requires at least one public subnet")
    if not private_subnets:
        raise TopologyError("the compute tier requires at least one private subnet")

    return NetworkPlan(
        vpc_name=prefix,
        vpc_cidr=str(vpc_block),
        private_subnets=private_subnets,
        public_subnets=public_subnets,
    )
