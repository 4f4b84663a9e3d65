import os

from aws_lambda_powertools import Logger

from common import constants

logger: Logger = Logger(
    service=constants.SERVICE_NAME, level=os.getenv("LOG_LEVEL", "INFO").upper()
)
