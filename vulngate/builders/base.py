import os
from abc import ABC, abstractmethod
from typing import List, Optional

from vulngate.core.model import DependencyNode


class GraphBuilder(ABC):
    """Base class inherited by all dependency-tree readers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Friendly format name (e.g., Maven JSON tree)."""
        pass

    @property
    @abstractmethod
    def tree_files(self) -> List[str]:
        """Default filenames this builder reads, in order of preference."""
        pass

    def detect(self, files: List[str]) -> bool:
        """Returns True if one of tree_files is present."""
        for tree_file in self.tree_files:
            if tree_file in files:
                return True
        return False

    def resolve_path(self, path: Optional[str] = None) -> str:
        if path:
            return path
        for tree_file in self.tree_files:
            if os.path.exists(tree_file):
                return tree_file
        return self.tree_files[0]

    @abstractmethod
    def build_graph(self, path: Optional[str] = None) -> DependencyNode:
        """Reads the tree. Raises GraphTraversalError on any failure."""
        pass
