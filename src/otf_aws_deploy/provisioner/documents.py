"""
Request documents for the provisioning steps.

Each render function returns a dict in the keyword-argument shape of the matching boto3 call, so the same
document is written to disk for inspection and then passed as ``client.call(**document)``.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict

from otf_aws_deploy.config import defaults
from otf_aws_deploy.provisioner.types import (
    ComputeEnvironmentSpec,
    JobDefinitionSpec,
    JobQueueSpec,
    JobSubmission,
    ScheduleSpec,
)

Document = Dict[str, Any]


def render_trust_policy(service_principal: str = defaults.ECS_TASKS_SERVICE_PRINCIPAL) -> Document:
    return {
        "Version": "2012-10-17",
        "Statement": [{"Effect": "Allow", "Principal": {"Service": service_principal}, "Action": "sts:AssumeRole"}],
    }


def render_job_definition(spec: JobDefinitionSpec) -> Document:
    return {
        "type": "container",
        "containerProperties": {
            "image": spec.image.uri,
            "command": list(spec.command),
            "resourceRequirements": [
                {"type": "VCPU", "value": str(float(spec.vcpus))},
                {"type": "MEMORY", "value": str(spec.memory_mb)},
            ],
            "fargatePlatformConfiguration": {"platformVersion": "LATEST"},
            "networkConfiguration": {},
            "ephemeralStorage": {"sizeInGiB": spec.ephemeral_storage_gib},
            "executionRoleArn": spec.execution_role_arn,
            "jobRoleArn": spec.job_role_arn,
            # filled in per submission
            "environment": [{"name": name, "value": ""} for name in spec.environment],
            "secrets": [],
            "linuxParameters": {},
            # EFS volumes are provisioned but not mounted yet
            "mountPoints": [],
            "logConfiguration": {"logDriver": spec.log_driver, "options": {}, "secretOptions": []},
        },
        "platformCapabilities": ["FARGATE"],
        "jobDefinitionName": spec.name,
        "timeout": {},
        "retryStrategy": {},
        "parameters": {},
    }


def render_compute_environment(spec: ComputeEnvironmentSpec) -> Document:
    return {
        "computeResources": {
            "type": "FARGATE",
            "maxvCpus": spec.max_vcpus,
            "subnets": list(spec.subnets),
            "securityGroupIds": list(spec.security_group_ids),
        },
        "type": "MANAGED",
        "state": "ENABLED",
        "computeEnvironmentName": spec.name,
    }


def render_job_queue(spec: JobQueueSpec) -> Document:
    return {
        "jobQueueName": spec.name,
        "priority": spec.priority,
        "state": "ENABLED",
        "computeEnvironmentOrder": [{"order": 1, "computeEnvironment": spec.compute_environment}],
    }


def render_job(submission: JobSubmission) -> Document:
    return {
        "jobName": submission.name,
        "jobDefinition": submission.job_definition_arn,
        "jobQueue": submission.job_queue_arn,
        "dependsOn": [],
        "parameters": {},
        "containerOverrides": {
            "command": list(submission.command),
            "resourceRequirements": [],
            "environment": [{"name": name, "value": value} for name, value in submission.environment.items()],
        },
    }


def render_schedule(spec: ScheduleSpec) -> Document:
    return {
        "Name": spec.name,
        "ScheduleExpression": spec.expression,
        "State": "ENABLED",
        "Description": spec.description,
        "FlexibleTimeWindow": {"Mode": "OFF"},
        "Target": {
            "Arn": spec.target_arn,
            "RoleArn": spec.role_arn,
            "EcsParameters": {
                "TaskDefinitionArn": spec.task_definition_arn,
                "TaskCount": 1,
                "LaunchType": "FARGATE",
                "NetworkConfiguration": {
                    "awsvpcConfiguration": {
                        "Subnets": list(spec.subnets),
                        "SecurityGroups": list(spec.security_groups),
                        "AssignPublicIp": "ENABLED",
                    }
                },
                "PlatformVersion": "LATEST",
            },
        },
    }


def write_document(document: Document, output_directory: str, file_name: str) -> Path:
    path = Path(output_directory) / file_name
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(document, f, indent=2)

    logging.debug(f"Wrote {path.absolute()}")
    return path
