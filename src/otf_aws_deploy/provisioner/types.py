import dataclasses
from typing import Any, Dict, List, Optional, Tuple


@dataclasses.dataclass(frozen=True)
class ImageRef:
    name: str
    tag: str
    account_id: str
    region: str

    @property
    def local_name(self) -> str:
        return f"{self.name}:{self.tag}"

    @property
    def registry(self) -> str:
        return f"{self.account_id}.dkr.ecr.{self.region}.amazonaws.com"

    @property
    def repository_uri(self) -> str:
        return f"{self.registry}/{self.name}"

    @property
    def uri(self) -> str:
        return f"{self.repository_uri}:{self.tag}"


@dataclasses.dataclass
class VolumeDescriptor:
    name: str
    file_system_id: Optional[str] = None


@dataclasses.dataclass
class RoleDescriptor:
    name: str
    trust_policy: Dict[str, Any]
    policy_arn: str


@dataclasses.dataclass
class JobDefinitionSpec:
    name: str
    image: ImageRef
    command: Tuple[str, ...]
    vcpus: float
    memory_mb: int
    ephemeral_storage_gib: int
    execution_role_arn: str
    job_role_arn: str
    environment: Tuple[str, ...]
    log_driver: str


@dataclasses.dataclass
class ComputeEnvironmentSpec:
    name: str
    max_vcpus: int
    subnets: List[str]
    security_group_ids: List[str]


@dataclasses.dataclass
class JobQueueSpec:
    name: str
    priority: int
    compute_environment: str


@dataclasses.dataclass
class JobSubmission:
    name: str
    job_definition_arn: str
    job_queue_arn: str
    command: Tuple[str, ...]
    environment: Dict[str, str] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass
class ScheduleSpec:
    name: str
    expression: str
    target_arn: str
    role_arn: str
    task_definition_arn: str
    subnets: List[str]
    security_groups: List[str]
    description: str = ""


@dataclasses.dataclass
class ProvisionResult:
    """Identifiers resolved by one provisioning run."""

    aws_region: str
    aws_account_id: str
    image_uri: str = ""
    config_volume_id: str = ""
    logs_volume_id: str = ""
    execution_role_arn: str = ""
    job_definition_arn: str = ""
    compute_environment_arn: str = ""
    job_queue_arn: str = ""
    job_id: str = ""
    schedule_arn: str = ""

    def to_dict(self) -> Dict[str, str]:
        return dataclasses.asdict(self)

    @staticmethod
    def from_dict(data: Dict[str, str]) -> "ProvisionResult":
        names = {field.name for field in dataclasses.fields(ProvisionResult)}
        return ProvisionResult(**{key: value for key, value in data.items() if key in names})
