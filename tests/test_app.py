import unittest

from vulngate.app import build_markdown_report, node_label
from vulngate.core.model import Coordinate, DependencyNode, VulnerabilityRecord

A = Coordinate("org.example", "alpha", "1.0")


class TestReportRendering(unittest.TestCase):

    def setUp(self):
        self.node = DependencyNode(A, scope="compile", children=[DependencyNode(Coordinate("g", "b", "1"))])
        self.records = [
            VulnerabilityRecord("CVE-1", 7.5, A, title="Deserialization", reference="https://example.org/CVE-1"),
            VulnerabilityRecord("CVE-2", 9.8, A),
        ]

    def test_markdown_report(self):
        report = build_markdown_report(A, self.records)

        self.assertIn("# (X) CVE-1", report)
        self.assertIn("**Deserialization**", report)
        self.assertIn("[https://example.org/CVE-1](https://example.org/CVE-1)", report)
        self.assertIn("# (X) CVE-2", report)
        self.assertIn("No title available.", report)

    def test_markdown_report_without_records(self):
        self.assertEqual(build_markdown_report(A, []), "No actionable vulnerabilities for org.example:alpha:1.0.")

    def test_vulnerable_label(self):
        label = node_label(self.node, self.records, excluded=False)
        self.assertIn("(!)", label)
        self.assertIn("2 vulns, max 9.8", label)
        self.assertIn("↳", label)

    def test_excluded_label(self):
        self.assertIn("(excluded)", node_label(self.node, [], excluded=True))

    def test_safe_label(self):
        label = node_label(DependencyNode(A), [], excluded=False)
        self.assertIn("(•)", label)
        self.assertNotIn("↳", label)
