from aws_cdk import (
    CfnOutput,
    CfnTag,
    Stack,
    Tags,
    aws_ec2 as ec2,
    aws_ssm as ssm,
)
from constructs import Construct

from common import constants
from common.config import BuildConfig
from common.exports import ExportRegistry
from common.stack_context import StackContext
from networking.topology import NetworkPlan, SubnetPlan, SubnetRole, plan_topology


class NetworkingStack(Stack):
    """VPC, subnets pinned to zones, one internet gateway and one shared NAT gateway.

    The VPC id, every subnet id and every route table id are exported to the
    registry as soon as they exist, so later units can import the network
    by name.
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
        self.registry = registry

        # Validated before the first construct is declared
        self.plan: NetworkPlan = plan_topology(
            config.stacks.network, config.region, self.context.prefix
        )

        self.vpc = self.create_vpc()
        self.export_id(
            f"{self.plan.vpc_name}-vpc-output", self.plan.vpc_export_name, self.vpc.vpc_id
        )

        self.private_subnets: list[ec2.Subnet] = [
            self.create_subnet(subnet) for subnet in self.plan.private_subnets
        ]
        self.public_subnets: list[ec2.Subnet] = [
            self.create_subnet(subnet) for subnet in self.plan.public_subnets
        ]

        self.internet_gateway, self.internet_gateway_attachment = (
            self.create_internet_gateway()
        )
        self.nat_gateway = self.create_nat_gateway(self.public_subnets[0])

        self.private_routes = self.add_routes_to_nat()
        self.public_routes = self.add_routes_to_internet_gateway()

        CfnOutput(self, "VpcId", value=self.vpc.vpc_id)

    def export_id(self, construct_id: str, name: str, value: str) -> ssm.StringParameter:
        """Register ``value`` under ``name`` and persist it in SSM for external consumers."""
        self.registry.put(name, value)
        return ssm.StringParameter(
            self,
            construct_id,
            parameter_name=name,
            string_value=value,
        )

    def create_vpc(self) -> ec2.Vpc:
        # Subnets, gateways and routes are declared explicitly below
        vpc = ec2.Vpc(
            self,
            f"{self.plan.vpc_name}-vpc",
            vpc_name=self.plan.vpc_name,
            ip_addresses=ec2.IpAddresses.cidr(self.plan.vpc_cidr),
            enable_dns_support=True,
            enable_dns_hostnames=True,
            nat_gateways=0,
            subnet_configuration=[],
        )
        Tags.of(vpc).add(constants.TAG_NAME, self.plan.vpc_name)
        return vpc

    def create_subnet(self, subnet: SubnetPlan) -> ec2.Subnet:
        is_public = subnet.role is SubnetRole.PUBLIC
        subnet_class = ec2.PublicSubnet if is_public else ec2.PrivateSubnet
        created = subnet_class(
            self,
            subnet.name,
            vpc_id=self.vpc.vpc_id,
            cidr_block=subnet.cidr,
            availability_zone=subnet.availability_zone,
            map_public_ip_on_launch=is_public,
        )
        # Inherited by the subnet's own route table
        Tags.of(created).add(constants.TAG_NAME, subnet.name)

        self.export_id(
            f"{subnet.name}-subnet-output", subnet.subnet_export_name, created.subnet_id
        )
        self.registry.put(
            subnet.route_table_export_name, created.route_table.route_table_id
        )
        return created

    def create_internet_gateway(
        self,
    ) -> tuple[ec2.CfnInternetGateway, ec2.CfnVPCGatewayAttachment]:
        name = self.plan.internet_gateway_name
        internet_gateway = ec2.CfnInternetGateway(
            self,
            name,
            tags=[CfnTag(key=constants.TAG_NAME, value=name)],
        )
        attachment = ec2.CfnVPCGatewayAttachment(
            self,
            f"{name}-attachment",
            vpc_id=self.vpc.vpc_id,
            internet_gateway_id=internet_gateway.ref,
        )
        return internet_gateway, attachment

    def create_nat_gateway(self, public_subnet: ec2.Subnet) -> ec2.CfnNatGateway:
        eip = ec2.CfnEIP(
            self,
            self.plan.nat_eip_name,
            domain="vpc",
            tags=[CfnTag(key=constants.TAG_NAME, value=self.plan.nat_eip_name)],
        )
        eip.add_dependency(self.internet_gateway_attachment)

        nat_gateway = ec2.CfnNatGateway(
            self,
            self.plan.nat_gateway_name,
            subnet_id=public_subnet.subnet_id,
            allocation_id=eip.attr_allocation_id,
            tags=[CfnTag(key=constants.TAG_NAME, value=self.plan.nat_gateway_name)],
        )
        nat_gateway.add_dependency(self.internet_gateway_attachment)
        return nat_gateway

    def add_routes_to_nat(self) -> list[ec2.CfnRoute]:
        routes = []
        for plan, subnet in zip(self.plan.private_subnets, self.private_subnets):
            route = ec2.CfnRoute(
                self,
                plan.route_name,
                route_table_id=subnet.route_table.route_table_id,
                nat_gateway_id=self.nat_gateway.ref,
                destination_cidr_block=constants.ANY_IPV4_CIDR,
            )
            route.add_dependency(self.nat_gateway)
            routes.append(route)
        return routes

    def add_routes_to_internet_gateway(self) -> list[ec2.CfnRoute]:
        routes = []
        for plan, subnet in zip(self.plan.public_subnets, self.public_subnets):
            route = ec2.CfnRoute(
                self,
                plan.route_name,
                route_table_id=subnet.route_table.route_table_id,
                gateway_id=self.internet_gateway.ref,
                destination_cidr_block=constants.ANY_IPV4_CIDR,
            )
            route.add_dependency(self.internet_gateway_attachment)
            routes.append(route)
        return routes
