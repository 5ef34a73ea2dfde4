#!/usr/bin/env python

"""Tests of the log handler setup and the engine message forwarding."""

import tempfile
import unittest
from pathlib import Path
from loguru import logger
from profclust.core.logger_setup import set_log_level, formatter
from profclust.core.progress import progress
from profclust.core.cluster import get_num_cpus
from profclust.core.exceptions import ConfigurationError


class TestLogging(unittest.TestCase):

    def tearDown(self):
        set_log_level("INFO")

    def test_bad_level(self):
        with self.assertRaises(ConfigurationError):
            set_log_level("LOUD")

    def test_job_tag(self):
        self.assertIn("[{extra[job]}]", formatter({"extra": {"job": "size_0-max/clust_00000"}}))
        self.assertNotIn("extra[job]", formatter({"extra": {}}))
        self.assertTrue(formatter({"extra": {"end": ""}}).endswith("{message}"))

    def test_file_handler(self):
        with tempfile.TemporaryDirectory() as tmp:
            log_file = Path(tmp) / "logs" / "run.txt"
            set_log_level("debug", log_file)
            progress("@@INFO: bucket done@@DEBUG: 3 clusters", "size_0-max")
            logger.bind(name="other").info("not profclust")
            logger.complete()
            text = log_file.read_text(encoding="utf-8")
            set_log_level("INFO")
        self.assertIn("[size_0-max] bucket done", text)
        self.assertIn("3 clusters", text)
        self.assertNotIn("not profclust", text)

    def test_num_cpus(self):
        self.assertGreaterEqual(get_num_cpus(), 1)


if __name__ == "__main__":
    unittest.main()
