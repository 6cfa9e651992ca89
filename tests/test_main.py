import unittest
from unittest.mock import MagicMock, patch

from vulngate.__main__ import EXIT_ERROR, EXIT_PASS, EXIT_VIOLATION, main, parse_args
from vulngate.core.errors import GraphTraversalError, PolicyViolation
from vulngate.core.model import PolicyConfiguration
from vulngate.core.rule import RuleOutcome, RuleState, SkipReason


class TestParseArgs(unittest.TestCase):

    def test_repeatable_exclusions(self):
        args = parse_args(["--exclude-coordinate", "g:a:1", "--exclude-coordinate", "g:b:2",
                           "--exclude-vulnerability", "CVE-1", "--no-transitive", "--threshold", "4.5"])
        self.assertEqual(args.exclude_coordinate, ["g:a:1", "g:b:2"])
        self.assertEqual(args.exclude_vulnerability, ["CVE-1"])
        self.assertFalse(args.transitive)
        self.assertEqual(args.threshold, 4.5)

    def test_transitive_left_to_config_by_default(self):
        self.assertIsNone(parse_args([]).transitive)


@patch("vulngate.__main__.setup_logging")
@patch("vulngate.__main__.load_config", return_value=PolicyConfiguration())
@patch("vulngate.__main__.detect_builder")
@patch("vulngate.__main__.BanVulnerableDependencies")
class TestMain(unittest.TestCase):

    def test_pass(self, mock_rule, mock_detect, _load, _logging):
        mock_rule.return_value.execute.return_value = RuleOutcome(RuleState.PASS, components={"x"})
        self.assertEqual(main([]), EXIT_PASS)

    def test_skip_is_a_pass(self, mock_rule, mock_detect, _load, _logging):
        mock_rule.return_value.execute.return_value = RuleOutcome(RuleState.PASS, skip_reason=SkipReason.OFFLINE)
        self.assertEqual(main(["--offline"]), EXIT_PASS)
        project = mock_rule.return_value.execute.call_args[0][0]
        self.assertTrue(project.offline)

    def test_violation(self, mock_rule, mock_detect, _load, _logging):
        mock_rule.return_value.execute.side_effect = PolicyViolation("Detected 1 vulnerable component:")
        self.assertEqual(main([]), EXIT_VIOLATION)

    def test_infrastructure_error(self, mock_rule, mock_detect, _load, _logging):
        mock_rule.return_value.execute.side_effect = GraphTraversalError("broken tree")
        self.assertEqual(main([]), EXIT_ERROR)

    def test_no_tree_found(self, mock_rule, mock_detect, _load, _logging):
        mock_detect.return_value = None
        self.assertEqual(main([]), EXIT_ERROR)
        mock_rule.assert_not_called()

    def test_overrides_passed_to_config(self, mock_rule, mock_detect, mock_load, _logging):
        mock_rule.return_value.execute.return_value = RuleOutcome(RuleState.PASS)
        main(["--config", "custom.toml", "--scope", "compile", "--exclude-vulnerability", "CVE-1"])

        path, = mock_load.call_args[0]
        overrides = mock_load.call_args[1]["overrides"]
        self.assertEqual(path, "custom.toml")
        self.assertEqual(overrides["scope"], "compile")
        self.assertEqual(overrides["exclude-vulnerability-ids"], ["CVE-1"])
        self.assertIsNone(overrides["cvss-score-threshold"])

    @patch("vulngate.__main__.builder_for_path")
    def test_explicit_graph_path(self, mock_for_path, mock_rule, mock_detect, _load, _logging):
        mock_rule.return_value.execute.return_value = RuleOutcome(RuleState.PASS)
        main(["--graph", "target/tree.txt", "--packaging", "jar"])

        mock_for_path.assert_called_once_with("target/tree.txt")
        mock_detect.assert_not_called()
        project = mock_rule.return_value.execute.call_args[0][0]
        self.assertEqual((project.graph_path, project.packaging), ("target/tree.txt", "jar"))
