import dataclasses
from typing import Optional

from otf_aws_deploy.config import defaults
from otf_aws_deploy.config.common.logging import LoggingConfig
from otf_aws_deploy.config.config_class import ConfigClass

# memory sizes (MiB) Fargate accepts for each vCPU size of a single job
FARGATE_MEMORY_SIZES = {
    0.25: (512, 1024, 2048),
    0.5: tuple(range(1024, 4096 + 1, 1024)),
    1.0: tuple(range(2048, 8192 + 1, 1024)),
    2.0: tuple(range(4096, 16384 + 1, 1024)),
    4.0: tuple(range(8192, 30720 + 1, 1024)),
    8.0: tuple(range(16384, 61440 + 1, 4096)),
    16.0: tuple(range(32768, 122880 + 1, 8192)),
}
FARGATE_VCPU_SIZES = tuple(FARGATE_MEMORY_SIZES)


@dataclasses.dataclass
class ProvisionerConfig(ConfigClass):
    """Configuration for deploying opentaskpy onto AWS Batch."""

    profile: str = dataclasses.field(
        metadata=dict(positional=True, help="named AWS credential profile selecting the account to deploy to")
    )

    logging_config: LoggingConfig = dataclasses.field(default_factory=LoggingConfig)

    aws_region: str = dataclasses.field(
        default=defaults.DEFAULT_AWS_REGION, metadata=dict(short="-r", help="AWS region")
    )

    image_name: str = dataclasses.field(
        default=defaults.DEFAULT_IMAGE_NAME,
        metadata=dict(short="-i", help="image name, also used for the ECR repository, IAM role and job queue"),
    )
    image_tag: str = dataclasses.field(default=defaults.DEFAULT_IMAGE_TAG, metadata=dict(help="image tag"))
    build_context: str = dataclasses.field(
        default=defaults.DEFAULT_BUILD_CONTEXT, metadata=dict(help="docker build context holding the Dockerfile")
    )
    skip_image_build: bool = dataclasses.field(
        default=False, metadata=dict(help="do not build and push the image, assume it is already in ECR")
    )

    config_volume_name: str = dataclasses.field(
        default=defaults.DEFAULT_CONFIG_VOLUME_NAME, metadata=dict(help="name of the EFS volume holding task configs")
    )
    logs_volume_name: str = dataclasses.field(
        default=defaults.DEFAULT_LOGS_VOLUME_NAME, metadata=dict(help="name of the EFS volume holding task logs")
    )

    job_vcpus: float = dataclasses.field(
        default=defaults.DEFAULT_JOB_VCPUS, metadata=dict(help=f"vCPUs per job, one of {FARGATE_VCPU_SIZES}")
    )
    job_memory_mb: int = dataclasses.field(
        default=defaults.DEFAULT_JOB_MEMORY_MB,
        metadata=dict(help="memory per job (MiB), must be a Fargate size for --job-vcpus"),
    )
    ephemeral_storage_gib: int = dataclasses.field(
        default=defaults.DEFAULT_EPHEMERAL_STORAGE_GIB, metadata=dict(help="ephemeral storage per job (GiB, 21-200)")
    )
    job_definition_revision: Optional[int] = dataclasses.field(
        default=None,
        metadata=dict(help="submit and schedule this job definition revision instead of the latest active one"),
    )

    compute_environment_name: str = dataclasses.field(
        default=defaults.DEFAULT_COMPUTE_ENVIRONMENT_NAME, metadata=dict(help="AWS Batch compute environment name")
    )
    max_vcpus: int = dataclasses.field(
        default=defaults.DEFAULT_MAX_VCPUS, metadata=dict(help="vCPU ceiling of the compute environment")
    )
    compute_environment_wait_timeout: int = dataclasses.field(
        default=defaults.DEFAULT_COMPUTE_ENV_WAIT_TIMEOUT_SECONDS,
        metadata=dict(help="seconds to wait for a new compute environment to become VALID"),
    )
    job_queue_priority: int = dataclasses.field(
        default=defaults.DEFAULT_JOB_QUEUE_PRIORITY, metadata=dict(help="job queue priority")
    )

    job_name: str = dataclasses.field(
        default=defaults.DEFAULT_JOB_NAME, metadata=dict(help="name of the submitted job")
    )
    task_id: Optional[str] = dataclasses.field(
        default=None, metadata=dict(short="-t", help="TASK_ID passed to the submitted job")
    )
    run_id: Optional[str] = dataclasses.field(default=None, metadata=dict(help="RUN_ID passed to the submitted job"))
    skip_job_submission: bool = dataclasses.field(default=False, metadata=dict(help="do not submit the test job"))

    schedule_name: str = dataclasses.field(
        default=defaults.DEFAULT_SCHEDULE_NAME, metadata=dict(help="EventBridge Scheduler schedule name")
    )
    schedule_expression: str = dataclasses.field(
        default=defaults.DEFAULT_SCHEDULE_EXPRESSION, metadata=dict(help="schedule expression, rate(...) or cron(...)")
    )

    output_directory: str = dataclasses.field(
        default=defaults.DEFAULT_OUTPUT_DIRECTORY,
        metadata=dict(short="-o", help="directory the generated request documents are written to"),
    )
    result_file: str = dataclasses.field(
        default=defaults.DEFAULT_RESULT_FILE, metadata=dict(help="file the provisioned identifiers are saved to")
    )

    def __post_init__(self) -> None:
        if not self.profile:
            raise ValueError("profile cannot be an empty string.")
        if not self.aws_region:
            raise ValueError("aws_region cannot be an empty string.")
        if not self.image_name:
            raise ValueError("image_name cannot be an empty string.")
        if not self.image_tag:
            raise ValueError("image_tag cannot be an empty string.")
        if self.config_volume_name == self.logs_volume_name:
            raise ValueError("config_volume_name and logs_volume_name must differ.")
        if self.job_vcpus not in FARGATE_VCPU_SIZES:
            raise ValueError(f"job_vcpus must be one of {FARGATE_VCPU_SIZES}, got {self.job_vcpus}.")
        if self.job_memory_mb not in FARGATE_MEMORY_SIZES[self.job_vcpus]:
            raise ValueError(
                f"job_memory_mb {self.job_memory_mb} is not a Fargate memory size for {self.job_vcpus} vCPUs, "
                f"allowed: {FARGATE_MEMORY_SIZES[self.job_vcpus][0]}-{FARGATE_MEMORY_SIZES[self.job_vcpus][-1]}."
            )
        if not 21 <= self.ephemeral_storage_gib <= 200:
            raise ValueError("ephemeral_storage_gib must be between 21 and 200.")
        if self.job_definition_revision is not None and self.job_definition_revision <= 0:
            raise ValueError("job_definition_revision must be a positive integer.")
        if self.max_vcpus <= 0:
            raise ValueError("max_vcpus must be a positive integer.")
        if self.compute_environment_wait_timeout <= 0:
            raise ValueError("compute_environment_wait_timeout must be a positive integer.")
        if self.job_queue_priority < 0:
            raise ValueError("job_queue_priority cannot be negative.")
        if not self.schedule_expression.startswith(("rate(", "cron(", "at(")):
            raise ValueError("schedule_expression must be a rate(...), cron(...) or at(...) expression.")
