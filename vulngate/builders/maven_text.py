import logging
import re
from typing import List, Optional

from vulngate.builders.base import GraphBuilder
from vulngate.core.errors import GraphTraversalError
from vulngate.core.model import Coordinate, DependencyNode

# Tree drawing prefix, three characters per level: "+- ", "\- ", "|  ", "   "
re_line = re.compile(r'^((?:[|+\\ ][- ] )*)(\S+)')
re_log_prefix = re.compile(r'^\[[A-Z]+\] ')


class MavenTextTreeBuilder(GraphBuilder):
    """Reads the output of `mvn dependency:tree -DoutputFile=dependency-tree.txt`."""

    @property
    def name(self) -> str:
        return "Maven (text tree)"

    @property
    def tree_files(self) -> List[str]:
        return ["dependency-tree.txt"]

    def build_graph(self, path: Optional[str] = None) -> DependencyNode:
        path = self.resolve_path(path)
        logging.debug(f"Parsing {path}...")

        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read()
        except OSError as e:
            raise GraphTraversalError(f"Error reading {path}: {e}") from e

        return self.parse(content, source=path)

    def parse(self, content: str, source: str = "<text>") -> DependencyNode:
        root = None
        # stack[i] is the last node seen at depth i
        stack: List[DependencyNode] = []

        for lineno, raw in enumerate(content.splitlines(), start=1):
            line = re_log_prefix.sub("", raw.rstrip())
            if not line.strip():
                continue

            match = re_line.match(line)
            if not match:
                raise GraphTraversalError(f"{source}:{lineno}: unrecognized line {raw!r}")

            depth = len(match.group(1)) // 3
            node = self._parse_artifact(match.group(2), is_root=(depth == 0), where=f"{source}:{lineno}")

            if depth == 0:
                if root is not None:
                    raise GraphTraversalError(f"{source}:{lineno}: more than one root")
                root = node
                stack = [node]
                continue

            if depth > len(stack):
                raise GraphTraversalError(f"{source}:{lineno}: indentation skips a level")

            del stack[depth:]
            stack[-1].children.append(node)
            stack.append(node)

        if root is None:
            raise GraphTraversalError(f"{source}: empty dependency tree")

        return root

    @staticmethod
    def _parse_artifact(text: str, is_root: bool, where: str) -> DependencyNode:
        parts = text.split(":")

        # group:artifact:type:version (root)
        # group:artifact:type:version:scope
        # group:artifact:type:classifier:version:scope
        if is_root and len(parts) == 4:
            group, artifact, packaging, version = parts
            scope = None
        elif len(parts) == 5:
            group, artifact, packaging, version, scope = parts
        elif len(parts) == 6:
            group, artifact, packaging, _classifier, version, scope = parts
        else:
            raise GraphTraversalError(f"{where}: cannot parse artifact '{text}'")

        return DependencyNode(Coordinate(group, artifact, version), scope=scope, type=packaging)
