import os
from typing import List, Optional

from .base import GraphBuilder
from .maven_json import MavenJsonTreeBuilder
from .maven_text import MavenTextTreeBuilder

BUILDERS = [
    MavenJsonTreeBuilder(),
    MavenTextTreeBuilder(),
]


def detect_builder(files: Optional[List[str]] = None) -> Optional[GraphBuilder]:
    """Checks files in the current directory and returns the matching builder."""
    if files is None:
        files = os.listdir(".")

    for builder in BUILDERS:
        if builder.detect(files):
            return builder

    return None


def builder_for_path(path: str) -> GraphBuilder:
    if path.endswith(".json"):
        return MavenJsonTreeBuilder()
    return MavenTextTreeBuilder()
