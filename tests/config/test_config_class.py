import os
import shutil
import tempfile
import unittest

from otf_aws_deploy.config import defaults
from otf_aws_deploy.config.common.logging import LoggingConfig
from otf_aws_deploy.config.section.provisioner import ProvisionerConfig

PROGRAM = "otf-aws-deploy"
SECTION = "provisioner"


class TestProvisionerConfig(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def write_config(self, content: str) -> str:
        path = os.path.join(self.tmpdir, "config.toml")
        with open(path, "w") as f:
            f.write(content)
        return path

    def test_defaults(self):
        config = ProvisionerConfig.parse(PROGRAM, SECTION, ["my-profile"])

        self.assertEqual(config.profile, "my-profile")
        self.assertEqual(config.aws_region, "eu-west-1")
        self.assertEqual(config.image_name, "opentaskpy-aws")
        self.assertEqual(config.image_tag, "latest")
        self.assertEqual(config.config_volume_name, "otf-config")
        self.assertEqual(config.logs_volume_name, "otf-logs")
        self.assertEqual(config.job_vcpus, 1.0)
        self.assertEqual(config.job_memory_mb, 2048)
        self.assertEqual(config.ephemeral_storage_gib, 21)
        self.assertEqual(config.compute_environment_name, "opentaskpy-1")
        self.assertEqual(config.max_vcpus, 1)
        self.assertEqual(config.schedule_name, "schedule-test-1")
        self.assertEqual(config.schedule_expression, "rate(1 minute)")
        self.assertIsNone(config.job_definition_revision)
        self.assertFalse(config.skip_image_build)
        self.assertFalse(config.skip_job_submission)
        self.assertEqual(config.logging_config, LoggingConfig())

    def test_command_line_options(self):
        config = ProvisionerConfig.parse(
            PROGRAM,
            SECTION,
            [
                "prod",
                "-r",
                "us-east-1",
                "--image-tag",
                "v2",
                "--job-vcpus",
                "0.5",
                "--job-definition-revision",
                "4",
                "--skip-job-submission",
                "-t",
                "nightly-transfer",
                "--logging-level",
                "DEBUG",
                "--logging-paths",
                "/dev/stdout,/tmp/deploy.log",
            ],
        )

        self.assertEqual(config.profile, "prod")
        self.assertEqual(config.aws_region, "us-east-1")
        self.assertEqual(config.image_tag, "v2")
        self.assertEqual(config.job_vcpus, 0.5)
        self.assertEqual(config.job_definition_revision, 4)
        self.assertTrue(config.skip_job_submission)
        self.assertEqual(config.task_id, "nightly-transfer")
        self.assertEqual(config.logging_config.level, "DEBUG")
        self.assertEqual(config.logging_config.paths, ("/dev/stdout", "/tmp/deploy.log"))

    def test_config_file_with_command_line_override(self):
        path = self.write_config(
            "\n".join(
                [
                    "[provisioner]",
                    'profile = "from-file"',
                    'aws_region = "eu-central-1"',
                    "max-vcpus = 4",
                    "skip_image_build = true",
                    "",
                    "[provisioner.logging_config]",
                    'paths = ["/dev/stderr"]',
                    "",
                ]
            )
        )

        config = ProvisionerConfig.parse(PROGRAM, SECTION, ["--config", path, "-r", "eu-west-2"])

        self.assertEqual(config.profile, "from-file")
        self.assertEqual(config.aws_region, "eu-west-2")
        self.assertEqual(config.max_vcpus, 4)
        self.assertTrue(config.skip_image_build)
        self.assertEqual(config.logging_config.paths, ("/dev/stderr",))

    def test_boolean_can_be_turned_off_from_command_line(self):
        path = self.write_config('[provisioner]\nprofile = "p"\nskip_image_build = true\n')

        config = ProvisionerConfig.parse(PROGRAM, SECTION, ["--config", path, "--no-skip-image-build"])

        self.assertFalse(config.skip_image_build)

    def test_missing_profile(self):
        with self.assertRaises(SystemExit):
            ProvisionerConfig.parse(PROGRAM, SECTION, [])

    def test_invalid_value_is_a_parser_error(self):
        with self.assertRaises(SystemExit):
            ProvisionerConfig.parse(PROGRAM, SECTION, ["p", "--job-vcpus", "3"])

    def test_wrongly_typed_file_value_is_a_parser_error(self):
        path = self.write_config('[provisioner]\nprofile = "p"\nmax_vcpus = "1"\n')

        with self.assertRaises(SystemExit):
            ProvisionerConfig.parse(PROGRAM, SECTION, ["--config", path])

    def test_missing_config_file_is_a_parser_error(self):
        with self.assertRaises(SystemExit):
            ProvisionerConfig.parse(PROGRAM, SECTION, ["p", "--config", os.path.join(self.tmpdir, "missing.toml")])

    def test_malformed_config_file_is_a_parser_error(self):
        path = self.write_config("[provisioner\nprofile = \n")

        with self.assertRaises(SystemExit):
            ProvisionerConfig.parse(PROGRAM, SECTION, ["--config", path])

    def test_invalid_choice(self):
        with self.assertRaises(SystemExit):
            ProvisionerConfig.parse(PROGRAM, SECTION, ["p", "--logging-level", "LOUD"])


class TestProvisionerConfigValidation(unittest.TestCase):
    def test_valid(self):
        ProvisionerConfig(profile="p")

    def test_empty_profile(self):
        with self.assertRaises(ValueError):
            ProvisionerConfig(profile="")

    def test_same_volume_names(self):
        with self.assertRaises(ValueError):
            ProvisionerConfig(profile="p", config_volume_name="otf", logs_volume_name="otf")

    def test_ephemeral_storage_range(self):
        with self.assertRaises(ValueError):
            ProvisionerConfig(profile="p", ephemeral_storage_gib=20)
        with self.assertRaises(ValueError):
            ProvisionerConfig(profile="p", ephemeral_storage_gib=201)

    def test_memory_must_fit_vcpus(self):
        ProvisionerConfig(profile="p", job_vcpus=0.25, job_memory_mb=512)
        ProvisionerConfig(profile="p", job_vcpus=4.0, job_memory_mb=30720)
        with self.assertRaises(ValueError):
            ProvisionerConfig(profile="p", job_vcpus=1.0, job_memory_mb=512)
        with self.assertRaises(ValueError):
            ProvisionerConfig(profile="p", job_vcpus=8.0, job_memory_mb=17408)

    def test_revision_must_be_positive(self):
        with self.assertRaises(ValueError):
            ProvisionerConfig(profile="p", job_definition_revision=0)

    def test_schedule_expression(self):
        ProvisionerConfig(profile="p", schedule_expression="cron(0 12 * * ? *)")
        with self.assertRaises(ValueError):
            ProvisionerConfig(profile="p", schedule_expression="every minute")

    def test_max_vcpus(self):
        with self.assertRaises(ValueError):
            ProvisionerConfig(profile="p", max_vcpus=0)

    def test_logging_level(self):
        with self.assertRaises(ValueError):
            LoggingConfig(level="LOUD")

    def test_default_paths(self):
        self.assertEqual(LoggingConfig().paths, defaults.DEFAULT_LOGGING_PATHS)


if __name__ == "__main__":
    unittest.main()
