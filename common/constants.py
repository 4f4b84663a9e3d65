from aws_cdk import aws_lambda as _lambda

POWER_TOOLS_PYTHON_RUNTIME = "python312"
POWER_TOOLS_LAMBDA_LAYER_NAME = "AWSLambdaPowertoolsPythonV3"
POWER_TOOLS_LAMBDA_LAYER_ACCOUNT = "017000801446"
POWER_TOOLS_VERSION = "18"
POWER_TOOLS_ARCHITECTURE = "x86_64"
POWER_TOOLS_LAYER = "arn:aws:lambda:{region}:{lambda_layer_account}:layer:{power_tools_type}-{runtime}-{architecture}:{version}"

PYTHON_RUNTIME = _lambda.Runtime.PYTHON_3_12
DEFAULT_ARCHITECTURE = _lambda.Architecture.X86_64
LAMBDAS_SRC = "lambdas"

DEFAULT_ENV = "dev"
ALLOWED_ENVS = ("dev", "staging", "prod")
CONFIG_CONTEXT_KEY = "config"

# Logger service name
SERVICE_NAME = "hosting-platform"

# Budgets and CLOUDFRONT scoped WAF web ACLs must be created here
GLOBAL_REGION = "us-east-1"

# Tags applied to every unit and inherited by its children
TAG_CREATED_BY = "created-by"
TAG_CREATED_BY_VALUE = "cdk"
TAG_ENVIRONMENT = "environment"
TAG_NAME = "Name"

ANY_IPV4_CIDR = "0.0.0.0/0"

# Unit (stack) suffixes
UNIT_BUDGET = "budget"
UNIT_CLOUDTRAIL = "cloudtrail"
UNIT_NETWORK = "network"
UNIT_SECURITY_GROUPS = "security-groups"
UNIT_ECS = "ecs"
UNIT_ECS_SCHEDULER = "ecs-scheduler"
UNIT_WAF = "waf"
UNIT_CLOUDFRONT = "cloudfront"
UNIT_CW_ALARMS = "cw-alarms"

# ECS
ECS_LOG_STREAM_PREFIX = "log"
ECR_MAX_IMAGE_COUNT = 10
TARGET_GROUP_NAME_MAX_LENGTH = 32
HEALTH_CHECK_TIMEOUT_SECONDS = 20
HEALTH_CHECK_UNHEALTHY_THRESHOLD = 5
# First deploy must complete before any image exists; raised out-of-band afterwards
BOOTSTRAP_DESIRED_COUNT = 0

# Scheduler
SCHEDULER_START_DESIRED_COUNT = 1
SCHEDULER_STOP_DESIRED_COUNT = 0
SCHEDULER_TIMEOUT_SECONDS = 120
SCHEDULER_HANDLER = "ecs_scheduler.handler"

# CloudWatch
CPU_ALARM_THRESHOLD = 80
MEMORY_ALARM_THRESHOLD = 80
UNHEALTHY_HOSTS_THRESHOLD = 1

# Budget notifications (percentage of the monthly limit)
BUDGET_THRESHOLDS = (99, 90)

# WAF
WAF_SCOPE = "CLOUDFRONT"
WAF_RATE_LIMIT = 1500
WAF_FORWARDED_IP_HEADER = "X-Forwarded-For"
WAF_MANAGED_RULE_GROUPS = (
    ("AWSManagedRulesAmazonIpReputationList", 10),
    ("AWSManagedRulesCommonRuleSet", 20),
    ("AWSManagedRulesKnownBadInputsRuleSet", 30),
    ("AWSManagedRulesLinuxRuleSet", 40),
    ("AWSManagedRulesUnixRuleSet", 50),
)
