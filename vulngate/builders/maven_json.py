import json
import logging
from typing import List, Optional

from vulngate.builders.base import GraphBuilder
from vulngate.core.errors import GraphTraversalError
from vulngate.core.model import Coordinate, DependencyNode


class MavenJsonTreeBuilder(GraphBuilder):
    """Reads the output of `mvn dependency:tree -DoutputType=json`."""

    @property
    def name(self) -> str:
        return "Maven (JSON tree)"

    @property
    def tree_files(self) -> List[str]:
        return ["dependency-tree.json"]

    def build_graph(self, path: Optional[str] = None) -> DependencyNode:
        path = self.resolve_path(path)
        logging.debug(f"Parsing {path}...")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise GraphTraversalError(f"Error reading {path}: {e}") from e

        try:
            root = self._build_tree(data)
        except (KeyError, TypeError, AttributeError) as e:
            raise GraphTraversalError(f"Malformed dependency tree in {path}: {e!r}") from e

        logging.debug(f"JSON tree built for {root.coordinate}.")
        return root

    def _build_tree(self, data) -> DependencyNode:
        node = DependencyNode(
            coordinate=Coordinate(data["groupId"], data["artifactId"], data["version"]),
            scope=data.get("scope") or None,
            type=data.get("type") or "jar",
            optional=str(data.get("optional", "false")).lower() == "true",
        )
        for child in data.get("children") or []:
            node.children.append(self._build_tree(child))
        return node
