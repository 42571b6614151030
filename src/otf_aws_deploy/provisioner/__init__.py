"""
Provisioner deploying the opentaskpy task runner onto AWS Batch.

Components:
    - OpenTaskPyProvisioner: runs the ensure-exists-or-create steps against AWS
    - documents: renders the request documents each step submits
    - docker_cli: builds, tags and pushes the container image
"""

from otf_aws_deploy.provisioner.exception import ProvisioningError
from otf_aws_deploy.provisioner.provisioner import OpenTaskPyProvisioner
from otf_aws_deploy.provisioner.types import ProvisionResult

__all__ = ["OpenTaskPyProvisioner", "ProvisionResult", "ProvisioningError"]
