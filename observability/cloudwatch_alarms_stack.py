"""CloudWatch alarms and dashboard for the ECS services.

Every service gets three leaf alarms (unhealthy targets, CPU, memory) and a
composite alarm firing when any of them is in ALARM. The composite rule
refers to the leaves by name, so the composite also declares an explicit
dependency on each leaf: CloudFormation then creates the leaves first and
deletes them last.
"""
from attrs import define
from aws_cdk import (
    Stack,
    aws_cloudwatch as cloudwatch,
    aws_cloudwatch_actions as cw_actions,
    aws_ecs as ecs,
    aws_elasticloadbalancingv2 as elbv2,
    aws_sns as sns,
)
from constructs import Construct

from common import constants
from common.config import BuildConfig
from common.errors import TopologyError
from common.stack_context import StackContext
from compute.ecs_stack import ServiceDeployment


@define(slots=True, frozen=True, kw_only=True)
class ServiceAlarms:
    service_name: str
    unhealthy_hosts: cloudwatch.Alarm
    cpu: cloudwatch.Alarm
    memory: cloudwatch.Alarm
    composite: cloudwatch.CompositeAlarm
    rule: str

    @property
    def leaves(self) -> tuple[cloudwatch.Alarm, ...]:
        return (self.unhealthy_hosts, self.cpu, self.memory)


def composite_alarm_rule(alarm_names: list[str]) -> str:
    """``ALARM(a) OR ALARM(b) OR ...`` in the order the leaves were created."""
    return " OR ".join(f"ALARM({name})" for name in alarm_names)


class CloudwatchAlarmsStack(Stack):

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: BuildConfig,
        load_balancer: elbv2.IApplicationLoadBalancer,
        cluster: ecs.ICluster,
        deployments: tuple[ServiceDeployment, ...],
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.context = StackContext(scope=self, config=config)
        self.load_balancer = load_balancer
        self.cluster = cluster

        if len(deployments) != len(config.services):
            raise TopologyError(
                f"{len(config.services)} services declared but {len(deployments)} deployments were built"
            )

        topic_name = self.context.build_resource_name("cw", "alarms")
        # Subscriptions are managed outside the template
        self.alarm_topic = sns.Topic(self, topic_name, topic_name=topic_name)
        self.alarm_action = cw_actions.SnsAction(self.alarm_topic)

        self.unhealthy_hosts_metrics: list[cloudwatch.IMetric] = []
        self.cpu_metrics: list[cloudwatch.IMetric] = []
        self.memory_metrics: list[cloudwatch.IMetric] = []
        self.service_alarms: tuple[ServiceAlarms, ...] = tuple(
            self._build_service_alarms(index, deployment)
            for index, deployment in enumerate(deployments)
        )

        self.dashboard = self._build_dashboard()

    # Metrics

    def _unhealthy_hosts_metric(self, target_group: elbv2.IApplicationTargetGroup) -> cloudwatch.Metric:
        return cloudwatch.Metric(
            namespace="AWS/ApplicationELB",
            metric_name="UnHealthyHostCount",
            statistic="Average",
            dimensions_map={
                "LoadBalancer": self.load_balancer.load_balancer_full_name,
                "TargetGroup": target_group.target_group_full_name,
            },
        )

    def _service_metric(self, metric_name: str, service: ecs.IService) -> cloudwatch.Metric:
        return cloudwatch.Metric(
            namespace="AWS/ECS",
            metric_name=metric_name,
            statistic="Average",
            dimensions_map={
                "ClusterName": self.cluster.cluster_name,
                "ServiceName": service.service_name,
            },
        )

    # Alarms

    def _build_leaf_alarm(
        self,
        alarm_name: str,
        index: int,
        metric: cloudwatch.IMetric,
        comparison_operator: cloudwatch.ComparisonOperator,
        threshold: float,
    ) -> cloudwatch.Alarm:
        # A missing datapoint neither triggers nor clears the alarm
        return cloudwatch.Alarm(
            self,
            f"{alarm_name}-{index}",
            alarm_name=alarm_name,
            metric=metric,
            evaluation_periods=1,
            datapoints_to_alarm=1,
            comparison_operator=comparison_operator,
            threshold=threshold,
            treat_missing_data=cloudwatch.TreatMissingData.MISSING,
        )

    def _build_service_alarms(self, index: int, deployment: ServiceDeployment) -> ServiceAlarms:
        name = deployment.service_config.name
        prefix = self.context.prefix

        unhealthy_hosts_metric = self._unhealthy_hosts_metric(deployment.target_group)
        cpu_metric = self._service_metric("CPUUtilization", deployment.service)
        memory_metric = self._service_metric("MemoryUtilization", deployment.service)
        self.unhealthy_hosts_metrics.append(unhealthy_hosts_metric)
        self.cpu_metrics.append(cpu_metric)
        self.memory_metrics.append(memory_metric)

        leaf_names = [
            f"tg-{prefix}-{name}-unhealthy-hosts",
            f"ecs-{prefix}-{name}-cpu-usage",
            f"ecs-{prefix}-{name}-memory-usage",
        ]
        unhealthy_hosts = self._build_leaf_alarm(
            leaf_names[0],
            index,
            unhealthy_hosts_metric,
            cloudwatch.ComparisonOperator.GREATER_THAN_OR_EQUAL_TO_THRESHOLD,
            constants.UNHEALTHY_HOSTS_THRESHOLD,
        )
        cpu = self._build_leaf_alarm(
            leaf_names[1],
            index,
            cpu_metric,
            cloudwatch.ComparisonOperator.GREATER_THAN_THRESHOLD,
            constants.CPU_ALARM_THRESHOLD,
        )
        memory = self._build_leaf_alarm(
            leaf_names[2],
            index,
            memory_metric,
            cloudwatch.ComparisonOperator.GREATER_THAN_THRESHOLD,
            constants.MEMORY_ALARM_THRESHOLD,
        )
        leaves = (unhealthy_hosts, cpu, memory)

        # Plain names, not alarm_name tokens, so the rule is a literal string
        rule = composite_alarm_rule(leaf_names)
        composite_name = f"ecs-{prefix}-{name}-alert"
        composite = cloudwatch.CompositeAlarm(
            self,
            composite_name,
            composite_alarm_name=composite_name,
            alarm_rule=cloudwatch.AlarmRule.from_string(rule),
        )
        composite.add_alarm_action(self.alarm_action)
        composite.add_ok_action(self.alarm_action)
        for leaf in leaves:
            composite.node.add_dependency(leaf)

        return ServiceAlarms(
            service_name=name,
            unhealthy_hosts=unhealthy_hosts,
            cpu=cpu,
            memory=memory,
            composite=composite,
            rule=rule,
        )

    # Dashboard

    def _build_dashboard(self) -> cloudwatch.Dashboard:
        dashboard_name = self.context.build_resource_name("ecs", "monitor")
        dashboard = cloudwatch.Dashboard(
            self,
            dashboard_name,
            dashboard_name=dashboard_name,
        )
        dashboard.add_widgets(
            cloudwatch.GraphWidget(
                title="ECS UNHEALTHY TARGETS",
                width=24,
                left=self.unhealthy_hosts_metrics,
            )
        )
        dashboard.add_widgets(
            cloudwatch.GraphWidget(
                title="ECS Services CPU",
                width=12,
                left=self.cpu_metrics,
            ),
            cloudwatch.GraphWidget(
                title="ECS Services MEMORY",
                width=12,
                left=self.memory_metrics,
            ),
        )
        return dashboard
