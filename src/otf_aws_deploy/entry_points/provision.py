import logging
import subprocess
import sys

from botocore.exceptions import BotoCoreError, ClientError

from otf_aws_deploy.config.section.provisioner import ProvisionerConfig
from otf_aws_deploy.provisioner import OpenTaskPyProvisioner, ProvisioningError
from otf_aws_deploy.utility.logging.utility import setup_logger


def main():
    config = ProvisionerConfig.parse("Deploy opentaskpy to AWS Batch on Fargate", "provisioner")

    setup_logger(config.logging_config.paths, config.logging_config.config_file, config.logging_config.level)

    try:
        provisioner = OpenTaskPyProvisioner(config)
        result = provisioner.provision_all()
    except (BotoCoreError, ClientError, subprocess.CalledProcessError, ProvisioningError, TimeoutError) as e:
        logging.error(f"Provisioning failed: {e}")
        sys.exit(1)

    OpenTaskPyProvisioner.save_result(result, config.result_file)

    print("\n=== Provisioned Resources ===")
    for key, value in result.to_dict().items():
        print(f"  {key}: {value}")


if __name__ == "__main__":
    main()
