# AWS
DEFAULT_AWS_REGION = "eu-west-1"

# container image
DEFAULT_IMAGE_NAME = "opentaskpy-aws"
DEFAULT_IMAGE_TAG = "latest"
DEFAULT_BUILD_CONTEXT = "."

# EFS volumes
DEFAULT_CONFIG_VOLUME_NAME = "otf-config"
DEFAULT_LOGS_VOLUME_NAME = "otf-logs"

# IAM
IAM_POLICY_ECS_TASK_EXECUTION = "arn:aws:iam::aws:policy/service-role/AmazonECSTaskExecutionRolePolicy"
ECS_TASKS_SERVICE_PRINCIPAL = "ecs-tasks.amazonaws.com"

# job definition
DEFAULT_JOB_VCPUS = 1.0
DEFAULT_JOB_MEMORY_MB = 2048
DEFAULT_EPHEMERAL_STORAGE_GIB = 21
DEFAULT_TASK_RUN_COMMAND = ("task-run", "-c", "/config", "-v")
DEFAULT_TASK_RUN_OVERRIDE_COMMAND = ("task-run", "-v", "-c", "/config")
TASK_ENVIRONMENT_VARIABLES = ("TASK_ID", "RUN_ID")
DEFAULT_LOG_DRIVER = "awslogs"

# compute environment and job queue
DEFAULT_COMPUTE_ENVIRONMENT_NAME = "opentaskpy-1"
DEFAULT_MAX_VCPUS = 1
DEFAULT_JOB_QUEUE_PRIORITY = 1
DEFAULT_COMPUTE_ENV_WAIT_TIMEOUT_SECONDS = 300
DEFAULT_COMPUTE_ENV_POLL_INTERVAL_SECONDS = 10

# job submission
DEFAULT_JOB_NAME = "job-test-1"

# EventBridge Scheduler
DEFAULT_SCHEDULE_NAME = "schedule-test-1"
DEFAULT_SCHEDULE_EXPRESSION = "rate(1 minute)"
DEFAULT_SCHEDULE_DESCRIPTION = "Schedule to run a task"

# generated documents
DEFAULT_OUTPUT_DIRECTORY = "."
DEFAULT_RESULT_FILE = ".otf_aws_deploy.json"
TRUST_POLICY_FILE = "trust-policy.json"
JOB_DEFINITION_FILE = "job-definition.json"
COMPUTE_ENVIRONMENT_FILE = "compute-environment.json"
JOB_FILE = "job.json"
SCHEDULE_FILE = "schedule.json"

# logging
DEFAULT_LOGGING_PATHS = ("/dev/stdout",)
DEFAULT_LOGGING_LEVEL = "INFO"
