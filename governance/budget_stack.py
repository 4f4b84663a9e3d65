from aws_cdk import Stack, aws_budgets as budgets, aws_sns as sns
from constructs import Construct

from common import constants
from common.config import BuildConfig
from common.stack_context import StackContext


class BudgetStack(Stack):
    """Monthly cost budget notifying an SNS topic when actual spend crosses a threshold."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: BuildConfig,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.context = StackContext(scope=self, config=config)

        topic_name = self.context.build_resource_name("budget", "alerts")
        # Subscriptions are managed outside the template
        self.topic = sns.Topic(self, topic_name, topic_name=topic_name)

        budget_name = self.context.build_resource_name("budget")
        self.budget = budgets.CfnBudget(
            self,
            budget_name,
            budget=budgets.CfnBudget.BudgetDataProperty(
                budget_name=budget_name,
                budget_type="COST",
                time_unit="MONTHLY",
                budget_limit=budgets.CfnBudget.SpendProperty(
                    amount=config.stacks.budget.limit,
                    unit="USD",
                ),
            ),
            notifications_with_subscribers=[
                self._notification(threshold) for threshold in constants.BUDGET_THRESHOLDS
            ],
        )

    def _notification(
        self, threshold: int
    ) -> budgets.CfnBudget.NotificationWithSubscribersProperty:
        return budgets.CfnBudget.NotificationWithSubscribersProperty(
            notification=budgets.CfnBudget.NotificationProperty(
                comparison_operator="GREATER_THAN",
                notification_type="ACTUAL",
                threshold=threshold,
                threshold_type="PERCENTAGE",
            ),
            subscribers=[
                budgets.CfnBudget.SubscriberProperty(
                    subscription_type="SNS",
                    address=self.topic.topic_arn,
                )
            ],
        )
