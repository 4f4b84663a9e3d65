from aws_cdk import aws_ec2 as ec2
from constructs import Construct

from common.config import BuildConfig
from common.exports import ExportRegistry
from networking.topology import NetworkPlan, plan_topology


def network_plan(config: BuildConfig) -> NetworkPlan:
    return plan_topology(config.stacks.network, config.region, config.prefix)


def import_vpc(
    scope: Construct,
    registry: ExportRegistry,
    plan: NetworkPlan,
    construct_id: str = "ImportedVpc",
) -> ec2.IVpc:
    """Rebuild the VPC inside ``scope`` from identifiers exported by the network unit.

    Only the private subnets are imported; they are the placement for the
    load balancer and the container services.
    """
    return ec2.Vpc.from_vpc_attributes(
        scope,
        construct_id,
        vpc_id=registry.get(plan.vpc_export_name),
        vpc_cidr_block=plan.vpc_cidr,
        availability_zones=[subnet.availability_zone for subnet in plan.private_subnets],
        private_subnet_ids=[
            registry.get(subnet.subnet_export_name) for subnet in plan.private_subnets
        ],
        private_subnet_route_table_ids=[
            registry.get(subnet.route_table_export_name)
            for subnet in plan.private_subnets
        ],
    )
