from aws_cdk import (
    CfnOutput,
    RemovalPolicy,
    Stack,
    aws_cloudfront as cloudfront,
    aws_cloudfront_origins as origins,
    aws_s3 as s3,
)
from constructs import Construct

from common.config import BuildConfig
from common.exports import ExportRegistry
from common.stack_context import StackContext
from edge.waf_stack import web_acl_export_name


class CloudfrontStack(Stack):
    """
    Private S3 bucket for the web application behind a CloudFront distribution.

    The web ACL lives in us-east-1; its ARN is read from the export registry
    and crosses regions through CDK cross-region references.
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

        # Account id keeps the bucket name globally unique
        bucket_name = self.context.build_resource_name("webapp", config.account)
        self.bucket = s3.Bucket(
            self,
            bucket_name,
            bucket_name=bucket_name,
            versioned=False,
            public_read_access=False,
            enforce_ssl=True,
            encryption=s3.BucketEncryption.S3_MANAGED,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            removal_policy=RemovalPolicy.DESTROY,
            auto_delete_objects=True,
            object_ownership=s3.ObjectOwnership.BUCKET_OWNER_ENFORCED,
            cors=[
                s3.CorsRule(
                    allowed_headers=["*"],
                    allowed_methods=[
                        s3.HttpMethods.DELETE,
                        s3.HttpMethods.GET,
                        s3.HttpMethods.HEAD,
                        s3.HttpMethods.POST,
                        s3.HttpMethods.PUT,
                    ],
                    allowed_origins=["*"],
                )
            ],
            metrics=[s3.BucketMetrics(id="EntireBucket")],
        )

        distribution_name = self.context.build_resource_name("cdn")
        self.distribution = cloudfront.Distribution(
            self,
            distribution_name,
            comment=distribution_name,
            web_acl_id=registry.get(web_acl_export_name(self.context.prefix)),
            default_root_object="index.html",
            default_behavior=cloudfront.BehaviorOptions(
                origin=origins.S3BucketOrigin.with_origin_access_control(self.bucket),
                allowed_methods=cloudfront.AllowedMethods.ALLOW_ALL,
                viewer_protocol_policy=cloudfront.ViewerProtocolPolicy.REDIRECT_TO_HTTPS,
                cache_policy=cloudfront.CachePolicy.CACHING_OPTIMIZED,
                compress=True,
            ),
            http_version=cloudfront.HttpVersion.HTTP2_AND_3,
        )

        CfnOutput(
            self,
            "DistributionDomainName",
            value=self.distribution.distribution_domain_name,
            description="CloudFront distribution domain name",
        )
