import logging
import os
import shutil
import sys
import tempfile
import unittest

from otf_aws_deploy.utility.logging.utility import LoggingLevel, setup_logger


class TestSetupLogger(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.root_logger = logging.getLogger()
        self.saved_handlers = list(self.root_logger.handlers)
        self.saved_level = self.root_logger.level

    def tearDown(self):
        for handler in list(self.root_logger.handlers):
            self.root_logger.removeHandler(handler)
            handler.close()
        for handler in self.saved_handlers:
            self.root_logger.addHandler(handler)
        self.root_logger.setLevel(self.saved_level)
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_allowed_levels(self):
        self.assertIn("INFO", LoggingLevel.allowed_levels())
        self.assertIn("DEBUG", LoggingLevel.allowed_levels())

    def test_stream_and_file_handlers(self):
        log_file = os.path.join(self.tmpdir, "deploy.log")

        setup_logger(("/dev/stdout", log_file), None, "DEBUG")

        handlers = self.root_logger.handlers
        self.assertEqual(len(handlers), 2)
        self.assertIs(handlers[0].stream, sys.stdout)
        self.assertIsInstance(handlers[1], logging.FileHandler)
        self.assertEqual(self.root_logger.level, logging.DEBUG)
        self.assertEqual(logging.getLogger("botocore").level, logging.INFO)

        logging.info("Created ECR repository: opentaskpy-aws")
        handlers[1].flush()
        with open(log_file) as f:
            self.assertIn("[INFO]", f.read())

    def test_replaces_existing_handlers(self):
        setup_logger(("/dev/stderr",), None, "INFO")
        setup_logger(("/dev/stderr",), None, "WARNING")

        self.assertEqual(len(self.root_logger.handlers), 1)
        self.assertEqual(self.root_logger.level, logging.WARNING)

    def test_missing_config_file(self):
        with self.assertRaises(FileNotFoundError):
            setup_logger(("/dev/stdout",), os.path.join(self.tmpdir, "missing.conf"), "INFO")


if __name__ == "__main__":
    unittest.main()
