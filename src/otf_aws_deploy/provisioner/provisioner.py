"""
AWS Batch provisioner for opentaskpy.

Deploys the opentaskpy task runner as an AWS Batch job on Fargate. In order, it provisions:
    - ECR repository and the container image built from the local Dockerfile
    - EFS volumes for task configs and logs
    - IAM execution role
    - Batch job definition, Fargate compute environment and job queue
    - a test job submission
    - EventBridge Scheduler schedule running the task at a fixed rate

Every step looks its resource up by name and only creates it when it is missing, so runs can be repeated.
Nothing is retried and nothing is rolled back: the first failing step aborts the run.
"""

import base64
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import boto3
from botocore.exceptions import ClientError

from otf_aws_deploy.config import defaults
from otf_aws_deploy.config.section.provisioner import ProvisionerConfig
from otf_aws_deploy.provisioner import docker_cli
from otf_aws_deploy.provisioner.documents import (
    render_compute_environment,
    render_job,
    render_job_definition,
    render_job_queue,
    render_schedule,
    render_trust_policy,
    write_document,
)
from otf_aws_deploy.provisioner.exception import ProvisioningError
from otf_aws_deploy.provisioner.types import (
    ComputeEnvironmentSpec,
    ImageRef,
    JobDefinitionSpec,
    JobQueueSpec,
    JobSubmission,
    ProvisionResult,
    RoleDescriptor,
    ScheduleSpec,
    VolumeDescriptor,
)


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class OpenTaskPyProvisioner:
    def __init__(self, config: ProvisionerConfig, session: Optional[boto3.Session] = None):
        self._config = config
        self._region = config.aws_region

        if session is None:
            session = boto3.Session(profile_name=config.profile, region_name=config.aws_region)

        self._session = session
        self._ecr = self._session.client("ecr")
        self._efs = self._session.client("efs")
        self._iam = self._session.client("iam")
        self._batch = self._session.client("batch")
        self._ec2 = self._session.client("ec2")
        self._scheduler = self._session.client("scheduler")
        self._sts = self._session.client("sts")

        self._account_id = self._sts.get_caller_identity()["Account"]

        self._image = ImageRef(
            name=config.image_name, tag=config.image_tag, account_id=self._account_id, region=self._region
        )
        self._role = RoleDescriptor(
            name=config.image_name,
            trust_policy=render_trust_policy(),
            policy_arn=defaults.IAM_POLICY_ECS_TASK_EXECUTION,
        )

        self._network: Optional[Tuple[List[str], List[str]]] = None

    def provision_all(self) -> ProvisionResult:
        """Run every provisioning step in order and return the identifiers they resolved."""
        config = self._config
        logging.info(f"Provisioning opentaskpy in {self._region} for account {self._account_id} ({config.profile})")

        result = ProvisionResult(aws_region=self._region, aws_account_id=self._account_id)

        # 1. Container image
        if config.skip_image_build:
            logging.info(f"Skipping image build, using {self._image.uri}")
            result.image_uri = self._image.uri
        else:
            result.image_uri = self.build_and_push_image()

        # 2. EFS volumes
        config_volume, logs_volume = self.provision_volumes()
        result.config_volume_id = config_volume.file_system_id or ""
        result.logs_volume_id = logs_volume.file_system_id or ""

        # 3. IAM execution role
        result.execution_role_arn = self.provision_execution_role()

        # 4. Job definition
        job_definition_arn = self.provision_job_definition(result.execution_role_arn)
        result.job_definition_arn = self.resolve_job_definition(job_definition_arn)

        # 5. Compute environment
        result.compute_environment_arn = self.provision_compute_environment()

        # 6. Job queue
        result.job_queue_arn = self.provision_job_queue(result.compute_environment_arn)

        # 7. Test job
        if config.skip_job_submission:
            logging.info("Skipping job submission")
        else:
            result.job_id = self.submit_job(result.job_definition_arn, result.job_queue_arn)

        # 8. Schedule
        result.schedule_arn = self.provision_schedule(
            job_definition_arn=result.job_definition_arn,
            role_arn=result.execution_role_arn,
            target_arn=self.ecs_cluster_arn(),
        )

        logging.info("Provisioning complete!")
        return result

    @staticmethod
    def save_result(result: ProvisionResult, result_file: str = defaults.DEFAULT_RESULT_FILE) -> None:
        """Save provisioned identifiers to file."""
        path = Path(result_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(result.to_dict(), f, indent=2)
        logging.info(f"Result saved to {path.absolute()}")

    @staticmethod
    def load_result(result_file: str = defaults.DEFAULT_RESULT_FILE) -> ProvisionResult:
        """Load provisioned identifiers from file."""
        path = Path(result_file)
        if not path.exists():
            raise FileNotFoundError(f"Result file not found: {path.absolute()}")
        with open(path, "r") as f:
            return ProvisionResult.from_dict(json.load(f))

    def build_and_push_image(self) -> str:
        """Build the image, make sure its ECR repository exists and push it unless ECR already has it."""
        image = self._image

        docker_cli.build_image(image.local_name, self._config.build_context)

        self.ensure_repository()
        self._docker_login()

        docker_cli.tag_image(image.local_name, image.uri)

        if self.image_in_repository():
            logging.info(f"Image already exists in the repository: {image.uri}")
        else:
            logging.info(f"Image does not exist in the repository, pushing {image.uri}")
            docker_cli.push_image(image.uri)
            logging.info(f"Image pushed: {image.uri}")

        return image.uri

    def ensure_repository(self) -> str:
        repo_name = self._image.name

        try:
            response = self._ecr.describe_repositories(repositoryNames=[repo_name])
            repository_uri = response["repositories"][0]["repositoryUri"]
            logging.info(f"ECR repository already exists: {repo_name}")
        except ClientError as e:
            if _error_code(e) != "RepositoryNotFoundException":
                raise
            response = self._ecr.create_repository(repositoryName=repo_name)
            repository_uri = response["repository"]["repositoryUri"]
            logging.info(f"Created ECR repository: {repo_name}")

        if repository_uri != self._image.repository_uri:
            logging.warning(f"ECR reports repository URI {repository_uri}, expected {self._image.repository_uri}")

        return repository_uri

    def image_in_repository(self) -> bool:
        """True if the locally built image was already pushed, i.e. ECR holds an image with the same digest."""
        local_digest = docker_cli.repo_digest(self._image.uri, self._image.repository_uri)
        if local_digest is None:
            return False

        paginator = self._ecr.get_paginator("list_images")
        for page in paginator.paginate(repositoryName=self._image.name):
            for image_id in page.get("imageIds", []):
                if image_id.get("imageDigest") == local_digest:
                    return True

        return False

    def _docker_login(self) -> None:
        auth = self._ecr.get_authorization_token()
        token = auth["authorizationData"][0]["authorizationToken"]
        registry = auth["authorizationData"][0]["proxyEndpoint"]

        username, password = base64.b64decode(token).decode().split(":", 1)
        docker_cli.login(registry, username, password)

    def provision_volumes(self) -> Tuple[VolumeDescriptor, VolumeDescriptor]:
        """Ensure the config and logs EFS volumes exist."""
        config_volume = self.provision_volume(self._config.config_volume_name)
        logs_volume = self.provision_volume(self._config.logs_volume_name)

        logging.info(f"Config volume ID: {config_volume.file_system_id}")
        logging.info(f"Logs volume ID: {logs_volume.file_system_id}")
        return config_volume, logs_volume

    def provision_volume(self, name: str) -> VolumeDescriptor:
        volume = VolumeDescriptor(name=name, file_system_id=self._find_file_system(name))

        if volume.file_system_id is not None:
            logging.info(f"EFS volume already exists: {name}")
            return volume

        try:
            response = self._efs.create_file_system(CreationToken=name, Tags=[{"Key": "Name", "Value": name}])
        except ClientError as e:
            # another create with the same token won, the error carries its file system
            if _error_code(e) != "FileSystemAlreadyExists" or "FileSystemId" not in e.response:
                raise
            volume.file_system_id = e.response["FileSystemId"]
            logging.info(f"EFS volume already exists: {name}")
            return volume

        volume.file_system_id = response["FileSystemId"]
        logging.info(f"Created EFS volume: {name}")
        return volume

    def _find_file_system(self, name: str) -> Optional[str]:
        """Match on the Name tag, or on the creation token for volumes whose Name tag was changed."""
        paginator = self._efs.get_paginator("describe_file_systems")
        for page in paginator.paginate():
            for file_system in page.get("FileSystems", []):
                if file_system.get("Name") == name or file_system.get("CreationToken") == name:
                    return file_system["FileSystemId"]

        return None

    def provision_execution_role(self) -> str:
        """Create IAM role the Fargate task runs as, with the ECS task execution policy attached."""
        role = self._role

        try:
            response = self._iam.get_role(RoleName=role.name)
            logging.info(f"IAM role already exists: {role.name}")
            return response["Role"]["Arn"]
        except ClientError as e:
            if _error_code(e) != "NoSuchEntity":
                raise

        write_document(role.trust_policy, self._config.output_directory, defaults.TRUST_POLICY_FILE)

        response = self._iam.create_role(
            RoleName=role.name,
            AssumeRolePolicyDocument=json.dumps(role.trust_policy),
            Description="Execution role for opentaskpy AWS Batch jobs",
        )
        role_arn = response["Role"]["Arn"]
        logging.info(f"Created IAM role: {role.name}")

        self._iam.attach_role_policy(RoleName=role.name, PolicyArn=role.policy_arn)
        logging.info(f"Attached {role.policy_arn} to {role.name}")

        return role_arn

    def provision_job_definition(self, role_arn: str) -> str:
        """Register the job definition unless an active revision of it exists, return the latest revision ARN."""
        config = self._config
        spec = JobDefinitionSpec(
            name=self._image.name,
            image=self._image,
            command=defaults.DEFAULT_TASK_RUN_COMMAND,
            vcpus=config.job_vcpus,
            memory_mb=config.job_memory_mb,
            ephemeral_storage_gib=config.ephemeral_storage_gib,
            execution_role_arn=role_arn,
            job_role_arn=role_arn,
            environment=defaults.TASK_ENVIRONMENT_VARIABLES,
            log_driver=defaults.DEFAULT_LOG_DRIVER,
        )

        document = render_job_definition(spec)
        write_document(document, config.output_directory, defaults.JOB_DEFINITION_FILE)

        active = self._active_job_definitions(spec.name)
        if active:
            latest = max(active, key=lambda job_definition: job_definition.get("revision", 0))
            logging.info(f"Job definition already exists: {latest['jobDefinitionArn']}")
            return latest["jobDefinitionArn"]

        response = self._batch.register_job_definition(**document)
        job_definition_arn = response["jobDefinitionArn"]
        logging.info(f"Registered job definition: {job_definition_arn}")
        return job_definition_arn

    def resolve_job_definition(self, latest_arn: str) -> str:
        """Return the job definition ARN jobs and schedules should use, honouring a pinned revision."""
        revision = self._config.job_definition_revision
        if revision is None:
            return latest_arn

        name = self._image.name
        for job_definition in self._active_job_definitions(name):
            if job_definition.get("revision") == revision:
                logging.info(f"Using pinned job definition revision {name}:{revision}")
                return job_definition["jobDefinitionArn"]

        raise ProvisioningError("job definition", f"revision {name}:{revision} is not active")

    def _active_job_definitions(self, name: str) -> List[Dict[str, Any]]:
        job_definitions: List[Dict[str, Any]] = []
        paginator = self._batch.get_paginator("describe_job_definitions")
        for page in paginator.paginate(jobDefinitionName=name, status="ACTIVE"):
            job_definitions.extend(page.get("jobDefinitions", []))

        return job_definitions

    def discover_network(self) -> Tuple[List[str], List[str]]:
        """Default subnets and default security groups of the region, in the order EC2 returns them."""
        if self._network is not None:
            return self._network

        subnets: List[str] = []
        paginator = self._ec2.get_paginator("describe_subnets")
        for page in paginator.paginate(Filters=[{"Name": "default-for-az", "Values": ["true"]}]):
            subnets.extend(subnet["SubnetId"] for subnet in page.get("Subnets", []) if subnet.get("DefaultForAz"))

        security_groups: List[str] = []
        paginator = self._ec2.get_paginator("describe_security_groups")
        for page in paginator.paginate(Filters=[{"Name": "group-name", "Values": ["default"]}]):
            security_groups.extend(
                group["GroupId"] for group in page.get("SecurityGroups", []) if group.get("GroupName") == "default"
            )

        if not subnets:
            raise ProvisioningError("network", f"no default subnets found in {self._region}, is there a default VPC?")
        if not security_groups:
            raise ProvisioningError("network", f"no default security group found in {self._region}")

        logging.info(f"Default subnets: {subnets}")
        logging.info(f"Default security groups: {security_groups}")

        self._network = (subnets, security_groups)
        return self._network

    def provision_compute_environment(self) -> str:
        """Create the Fargate compute environment and wait for it to become VALID."""
        config = self._config
        subnets, security_groups = self.discover_network()
        spec = ComputeEnvironmentSpec(
            name=config.compute_environment_name,
            max_vcpus=config.max_vcpus,
            subnets=subnets,
            security_group_ids=security_groups,
        )

        document = render_compute_environment(spec)
        write_document(document, config.output_directory, defaults.COMPUTE_ENVIRONMENT_FILE)

        existing = self._describe_compute_environment(spec.name)
        if existing is not None:
            if existing.get("state") != "ENABLED":
                raise ProvisioningError("compute environment", f"{spec.name} exists but is {existing.get('state')}")
            logging.info(f"Compute environment already exists: {spec.name}")
            # left CREATING or UPDATING by an earlier run that timed out
            if existing.get("status") != "VALID":
                self._wait_for_compute_environment(spec.name)
            return existing["computeEnvironmentArn"]

        response = self._batch.create_compute_environment(**document)
        logging.info(f"Created compute environment: {spec.name}")

        self._wait_for_compute_environment(spec.name)
        return response["computeEnvironmentArn"]

    def ecs_cluster_arn(self) -> str:
        """ARN of the ECS cluster AWS Batch runs the compute environment's Fargate tasks on."""
        name = self._config.compute_environment_name
        environment = self._describe_compute_environment(name)
        if environment is None or not environment.get("ecsClusterArn"):
            raise ProvisioningError("compute environment", f"{name} has no ECS cluster")

        return environment["ecsClusterArn"]

    def _describe_compute_environment(self, name: str) -> Optional[Dict[str, Any]]:
        response = self._batch.describe_compute_environments(computeEnvironments=[name])
        for environment in response.get("computeEnvironments", []):
            if environment.get("computeEnvironmentName") == name and environment.get("status") != "DELETED":
                return environment

        return None

    def _wait_for_compute_environment(
        self, env_name: str, poll_interval: int = defaults.DEFAULT_COMPUTE_ENV_POLL_INTERVAL_SECONDS
    ) -> Dict[str, Any]:
        """Wait for compute environment to become VALID."""
        timeout = self._config.compute_environment_wait_timeout

        start = time.time()
        logging.info(f"Waiting for compute environment {env_name} to become VALID (timeout: {timeout}s)...")
        while time.time() - start < timeout:
            environment = self._describe_compute_environment(env_name)
            if environment is None:
                logging.warning(f"Compute environment {env_name} not found, waiting...")
                time.sleep(poll_interval)
                continue

            status = environment["status"]
            logging.info(f"Compute environment status: {status}")
            if status == "VALID":
                logging.info(f"Compute environment {env_name} is VALID")
                return environment
            if status == "INVALID":
                status_reason = environment.get("statusReason", "Unknown")
                raise ProvisioningError("compute environment", f"{env_name} is INVALID: {status_reason}")
            if status not in ("CREATING", "UPDATING"):
                raise ProvisioningError("compute environment", f"{env_name} has unknown status: {status}")

            time.sleep(poll_interval)

        raise TimeoutError(f"Compute environment {env_name} did not become VALID within {timeout}s")

    def provision_job_queue(self, compute_env_arn: str) -> str:
        spec = JobQueueSpec(
            name=self._image.name, priority=self._config.job_queue_priority, compute_environment=compute_env_arn
        )

        response = self._batch.describe_job_queues(jobQueues=[spec.name])
        for queue in response.get("jobQueues", []):
            if queue.get("jobQueueName") != spec.name or queue.get("status") == "DELETED":
                continue
            if queue.get("state") != "ENABLED":
                raise ProvisioningError("job queue", f"{spec.name} exists but is {queue.get('state')}")
            logging.info(f"Job queue already exists: {spec.name}")
            return queue["jobQueueArn"]

        response = self._batch.create_job_queue(**render_job_queue(spec))
        logging.info(f"Created job queue: {spec.name}")
        return response["jobQueueArn"]

    def submit_job(self, job_definition_arn: str, job_queue_arn: str) -> str:
        """Submit a single test job, with TASK_ID and RUN_ID set when they are configured."""
        config = self._config

        command = defaults.DEFAULT_TASK_RUN_OVERRIDE_COMMAND
        if config.task_id:
            command = command + ("-t", config.task_id)

        values = (config.task_id, config.run_id)
        environment = {name: value for name, value in zip(defaults.TASK_ENVIRONMENT_VARIABLES, values) if value}

        submission = JobSubmission(
            name=config.job_name,
            job_definition_arn=job_definition_arn,
            job_queue_arn=job_queue_arn,
            command=command,
            environment=environment,
        )

        document = render_job(submission)
        write_document(document, config.output_directory, defaults.JOB_FILE)

        response = self._batch.submit_job(**document)
        logging.info(f"Submitted job {submission.name}: {response['jobId']}")
        return response["jobId"]

    def provision_schedule(self, job_definition_arn: str, role_arn: str, target_arn: str) -> str:
        """Create the EventBridge Scheduler schedule that launches the task at a fixed rate."""
        config = self._config
        subnets, security_groups = self.discover_network()
        spec = ScheduleSpec(
            name=config.schedule_name,
            expression=config.schedule_expression,
            target_arn=target_arn,
            role_arn=role_arn,
            task_definition_arn=job_definition_arn,
            subnets=subnets,
            security_groups=security_groups,
            description=defaults.DEFAULT_SCHEDULE_DESCRIPTION,
        )

        document = render_schedule(spec)
        write_document(document, config.output_directory, defaults.SCHEDULE_FILE)

        try:
            response = self._scheduler.get_schedule(Name=spec.name)
            logging.info(f"Schedule already exists: {spec.name}")
            return response["Arn"]
        except ClientError as e:
            if _error_code(e) != "ResourceNotFoundException":
                raise

        response = self._scheduler.create_schedule(**document)
        logging.info(f"Created schedule: {spec.name} ({spec.expression})")
        return response["ScheduleArn"]
