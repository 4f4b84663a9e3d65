from aws_cdk import (
    Duration,
    RemovalPolicy,
    Stack,
    aws_cloudtrail as cloudtrail,
    aws_s3 as s3,
)
from constructs import Construct

from common.config import BuildConfig
from common.stack_context import StackContext

TIERING_AFTER_DAYS = 15
EXPIRATION_DAYS = 90


class CloudtrailStack(Stack):
    """Multi-region audit trail delivered to a retained, private S3 bucket."""

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

        # Account id keeps the bucket name globally unique
        bucket_name = self.context.build_resource_name("cloudtrail", config.account)
        self.bucket = s3.Bucket(
            self,
            bucket_name,
            bucket_name=bucket_name,
            versioned=False,
            public_read_access=False,
            enforce_ssl=True,
            encryption=s3.BucketEncryption.S3_MANAGED,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            lifecycle_rules=[
                s3.LifecycleRule(
                    transitions=[
                        s3.Transition(
                            storage_class=s3.StorageClass.INTELLIGENT_TIERING,
                            transition_after=Duration.days(TIERING_AFTER_DAYS),
                        )
                    ],
                    expiration=Duration.days(EXPIRATION_DAYS),
                )
            ],
            removal_policy=RemovalPolicy.RETAIN,
        )

        trail_name = self.context.build_resource_name("trail")
        self.trail = cloudtrail.Trail(
            self,
            trail_name,
            trail_name=trail_name,
            bucket=self.bucket,
            is_multi_region_trail=True,
        )
