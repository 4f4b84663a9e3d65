import os
from typing import Any, TypedDict

import boto3
from aws_lambda_powertools.logging.logger import Logger
from aws_lambda_powertools.tracing import Tracer
from aws_lambda_powertools.utilities.typing import LambdaContext
from botocore.exceptions import ClientError

logger: Logger = Logger(
    service="ecs-scheduler", level=os.getenv("LOG_LEVEL", "INFO").upper()
)
tracer: Tracer = Tracer(service="ecs-scheduler")

region = os.getenv("REGION") or os.getenv("AWS_REGION")
ecs_client = boto3.client("ecs", region_name=region)


class ServiceFailure(TypedDict):
    service: str
    code: str
    message: str


class SchedulerResult(TypedDict):
    status_code: int
    cluster: str
    desired_count: int
    updated: list[str]
    unchanged: list[str]
    failed: list[ServiceFailure]


def _failure(service: str, e: ClientError) -> ServiceFailure:
    error_info = (e.response or {}).get("Error", {})
    return {
        "service": service,
        "code": error_info.get("Code", "Unknown"),
        "message": error_info.get("Message", "Unknown"),
    }


def parse_services(raw: str | None) -> list[str]:
    return [name.strip() for name in (raw or "").split(",") if name.strip()]


def parse_desired_count(raw: str | None) -> int | None:
    try:
        desired_count = int(raw or "")
    except ValueError:
        return None
    return desired_count if desired_count >= 0 else None


@tracer.capture_method
def _current_desired_count(cluster: str, service: str) -> int | None:
    response = ecs_client.describe_services(cluster=cluster, services=[service])
    services = response.get("services", [])
    if not services:
        return None
    return services[0].get("desiredCount")


@tracer.capture_method
def update_services(cluster: str, services: list[str], desired_count: int) -> SchedulerResult:
    result: SchedulerResult = {
        "status_code": 200,
        "cluster": cluster,
        "desired_count": desired_count,
        "updated": [],
        "unchanged": [],
        "failed": [],
    }
    for service in services:
        try:
            if _current_desired_count(cluster, service) == desired_count:
                logger.info("Service already at desired count", service=service)
                result["unchanged"].append(service)
                continue

            ecs_client.update_service(
                cluster=cluster, service=service, desiredCount=desired_count
            )
            logger.info(
                "Updated service desired count",
                service=service,
                desired_count=desired_count,
            )
            result["updated"].append(service)
        except ClientError as e:
            logger.exception("Failed to update service", service=service, cluster=cluster)
            result["failed"].append(_failure(service, e))

    if result["failed"]:
        result["status_code"] = 500
    return result


@logger.inject_lambda_context
@tracer.capture_lambda_handler
def handler(event: dict[str, Any], context: LambdaContext) -> dict[str, Any]:
    cluster = os.getenv("CLUSTER_NAME")
    desired_count = parse_desired_count(os.getenv("DESIRED_COUNT"))
    if not cluster or desired_count is None:
        logger.error("CLUSTER_NAME missing or DESIRED_COUNT not a non-negative integer, cannot continue.")
        return {"status_code": 500, "message": "Configuration environment variable missing or invalid"}

    services = parse_services(os.getenv("SERVICES"))
    logger.info("Scheduling ECS services", cluster=cluster, services=services)
    return dict(update_services(cluster, services, desired_count))
