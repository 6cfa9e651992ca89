import os
import unittest
from unittest.mock import mock_open, patch

from vulngate.config import load_config, read_settings
from vulngate.core.errors import ConfigurationError
from vulngate.core.model import Coordinate

VULNGATE_TOML = b"""
scope = "compile, runtime"
transitive = false
cvss-score-threshold = 5.5
exclude-coordinates = ["org.example:alpha:1.0"]
exclude-vulnerability-ids = ["CVE-2020-0001"]

[service]
base-url = "https://index.example.org/"
username = "me"
token = "secret"
timeout = 10
"""

PYPROJECT_TOML = b"""
[project]
name = "something"

[tool.vulngate]
cvss-score-threshold = 7
"""


class TestLoadConfig(unittest.TestCase):

    def load(self, content, path="vulngate.toml", **kwargs):
        with patch("builtins.open", mock_open(read_data=content)):
            return load_config(path, **kwargs)

    def test_full_file(self):
        config = self.load(VULNGATE_TOML)

        self.assertEqual(config.scopes, frozenset({"compile", "runtime"}))
        self.assertFalse(config.transitive)
        self.assertEqual(config.cvss_score_threshold, 5.5)
        self.assertEqual(config.exclude_coordinates, frozenset({Coordinate("org.example", "alpha", "1.0")}))
        self.assertEqual(config.exclude_vulnerability_ids, frozenset({"CVE-2020-0001"}))
        self.assertEqual(config.service.base_url, "https://index.example.org")
        self.assertEqual((config.service.username, config.service.token), ("me", "secret"))
        self.assertEqual(config.service.timeout, 10.0)

    def test_pyproject_table(self):
        config = self.load(PYPROJECT_TOML, path="pyproject.toml")
        self.assertEqual(config.cvss_score_threshold, 7.0)
        self.assertTrue(config.transitive)
        self.assertIsNone(config.scopes)

    @patch("vulngate.config.os.path.exists", return_value=False)
    @patch.dict(os.environ, {}, clear=True)
    def test_defaults_without_file(self, _exists):
        config = load_config()

        self.assertIsNone(config.scopes)
        self.assertTrue(config.transitive)
        self.assertEqual(config.cvss_score_threshold, 0.0)
        self.assertEqual(config.exclude_coordinates, frozenset())
        self.assertIsNone(config.service.username)

    @patch.dict(os.environ, {"OSSINDEX_USERNAME": "env-user", "OSSINDEX_TOKEN": "env-token"})
    def test_credentials_from_environment(self):
        config = self.load(b"scope = 'compile'")
        self.assertEqual((config.service.username, config.service.token), ("env-user", "env-token"))

    def test_overrides(self):
        config = self.load(VULNGATE_TOML, overrides={
            "scope": "test",
            "transitive": None,
            "cvss-score-threshold": 9.0,
            "exclude-coordinates": ["org.example:beta:2.0"],
            "exclude-vulnerability-ids": None,
        })

        self.assertEqual(config.scopes, frozenset({"test"}))
        self.assertFalse(config.transitive)
        self.assertEqual(config.cvss_score_threshold, 9.0)
        self.assertEqual({str(c) for c in config.exclude_coordinates}, {"org.example:alpha:1.0", "org.example:beta:2.0"})
        self.assertEqual(config.exclude_vulnerability_ids, frozenset({"CVE-2020-0001"}))

    def test_invalid_values(self):
        for content in (
            b"cvss-score-threshold = 'high'",
            b"cvss-score-threshold = -1",
            b"exclude-coordinates = ['not-a-coordinate']",
            b"transitive = 'sometimes'",
            b"[service]\ntimeout = 'soon'",
        ):
            with self.assertRaises(ConfigurationError):
                self.load(content)

    def test_unreadable_toml(self):
        with patch("builtins.open", mock_open(read_data=b"scope = ")):
            with self.assertRaises(ConfigurationError):
                read_settings("vulngate.toml")
