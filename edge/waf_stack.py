"""CLOUDFRONT scoped web ACL in front of the CDN.

CLOUDFRONT scope web ACLs only exist in us-east-1; the orchestrator pins
this unit there and the CDN unit reads the ARN across regions.
"""
from aws_cdk import (
    CfnOutput,
    RemovalPolicy,
    Stack,
    aws_logs as logs,
    aws_wafv2 as wafv2,
)
from constructs import Construct

from common import constants
from common.config import BuildConfig
from common.exports import ExportRegistry
from common.stack_context import StackContext


def web_acl_export_name(prefix: str) -> str:
    return f"{prefix}-cdn-waf-arn"


def _visibility(metric_name: str) -> wafv2.CfnWebACL.VisibilityConfigProperty:
    return wafv2.CfnWebACL.VisibilityConfigProperty(
        cloud_watch_metrics_enabled=True,
        metric_name=metric_name,
        sampled_requests_enabled=True,
    )


def _build_rate_limit_rule(prefix: str) -> wafv2.CfnWebACL.RuleProperty:
    rule_name = f"{prefix}-rate-limit"
    return wafv2.CfnWebACL.RuleProperty(
        name=rule_name,
        priority=0,
        action=wafv2.CfnWebACL.RuleActionProperty(block={}),
        statement=wafv2.CfnWebACL.StatementProperty(
            rate_based_statement=wafv2.CfnWebACL.RateBasedStatementProperty(
                limit=constants.WAF_RATE_LIMIT,
                aggregate_key_type="IP",
            ),
        ),
        visibility_config=_visibility(rule_name),
    )


def _source_or_forwarded_ip(ip_set_arn: str) -> wafv2.CfnWebACL.StatementProperty:
    """Match the first X-Forwarded-For address or the direct source address."""
    return wafv2.CfnWebACL.StatementProperty(
        or_statement=wafv2.CfnWebACL.OrStatementProperty(
            statements=[
                wafv2.CfnWebACL.StatementProperty(
                    ip_set_reference_statement=wafv2.CfnWebACL.IPSetReferenceStatementProperty(
                        arn=ip_set_arn,
                        ip_set_forwarded_ip_config=wafv2.CfnWebACL.IPSetForwardedIPConfigurationProperty(
                            header_name=constants.WAF_FORWARDED_IP_HEADER,
                            position="FIRST",
                            fallback_behavior="NO_MATCH",
                        ),
                    ),
                ),
                wafv2.CfnWebACL.StatementProperty(
                    ip_set_reference_statement=wafv2.CfnWebACL.IPSetReferenceStatementProperty(
                        arn=ip_set_arn,
                    ),
                ),
            ],
        ),
    )


def _build_managed_rules() -> list[wafv2.CfnWebACL.RuleProperty]:
    return [
        wafv2.CfnWebACL.RuleProperty(
            name=f"AWS-{name}",
            priority=priority,
            override_action=wafv2.CfnWebACL.OverrideActionProperty(none={}),
            statement=wafv2.CfnWebACL.StatementProperty(
                managed_rule_group_statement=wafv2.CfnWebACL.ManagedRuleGroupStatementProperty(
                    vendor_name="AWS",
                    name=name,
                ),
            ),
            visibility_config=_visibility(name),
        )
        for name, priority in constants.WAF_MANAGED_RULE_GROUPS
    ]


class WafStack(Stack):
    """Rate limit, block and allow lists, AWS managed rule groups, default block."""

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
        prefix = self.context.prefix
        waf_config = config.stacks.waf

        self.blacklist_ip_set = self._build_ip_set("blacklist", waf_config.ip_blacklist)
        self.whitelist_ip_set = self._build_ip_set("whitelist", waf_config.ip_whitelist)

        rules = [
            _build_rate_limit_rule(prefix),
            wafv2.CfnWebACL.RuleProperty(
                name=f"{prefix}-cdn-blacklist-rule",
                priority=1,
                action=wafv2.CfnWebACL.RuleActionProperty(block={}),
                statement=_source_or_forwarded_ip(self.blacklist_ip_set.attr_arn),
                visibility_config=_visibility("blacklist-sources"),
            ),
            wafv2.CfnWebACL.RuleProperty(
                name=f"{prefix}-cdn-whitelist-rule",
                priority=2,
                action=wafv2.CfnWebACL.RuleActionProperty(allow={}),
                statement=_source_or_forwarded_ip(self.whitelist_ip_set.attr_arn),
                visibility_config=_visibility("whitelist-sources"),
            ),
            *_build_managed_rules(),
        ]

        waf_name = self.context.build_resource_name("cdn", "waf")
        self.web_acl = wafv2.CfnWebACL(
            self,
            waf_name,
            name=waf_name,
            scope=constants.WAF_SCOPE,
            default_action=wafv2.CfnWebACL.DefaultActionProperty(block={}),
            rules=rules,
            visibility_config=_visibility(waf_name),
        )

        # WAF only delivers to log groups whose name starts with aws-waf-logs-
        self.log_group = self.context.build_log_group(
            f"aws-waf-logs-{config.project}-{config.environment}",
            retention=logs.RetentionDays.ONE_MONTH,
        )
        self.logging_configuration = wafv2.CfnLoggingConfiguration(
            self,
            f"{waf_name}-logs",
            resource_arn=self.web_acl.attr_arn,
            log_destination_configs=[self.log_group.log_group_arn],
            logging_filter={
                "DefaultBehavior": "DROP",
                "Filters": [
                    {
                        "Behavior": "KEEP",
                        "Conditions": [
                            {"ActionCondition": {"Action": "COUNT"}},
                            {"ActionCondition": {"Action": "BLOCK"}},
                        ],
                        "Requirement": "MEETS_ANY",
                    }
                ],
            },
        )

        registry.put(web_acl_export_name(prefix), self.web_acl.attr_arn)

        CfnOutput(
            self,
            "WebAclArn",
            value=self.web_acl.attr_arn,
            description="CloudFront WAF WebACL ARN",
        )

    def _build_ip_set(self, kind: str, addresses: tuple[str, ...]) -> wafv2.CfnIPSet:
        ip_set_name = self.context.build_resource_name(kind, "ipset")
        return wafv2.CfnIPSet(
            self,
            ip_set_name,
            name=ip_set_name,
            scope=constants.WAF_SCOPE,
            ip_address_version="IPV4",
            addresses=list(addresses),
        )
