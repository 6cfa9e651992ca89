from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple


@dataclass(frozen=True, order=True)
class Coordinate:
    group: str
    name: str
    version: str

    @classmethod
    def parse(cls, text: str) -> "Coordinate":
        parts = [p.strip() for p in text.strip().split(":")]
        if len(parts) != 3 or not all(parts):
            raise ValueError(f"Invalid coordinate '{text}', expected group:name:version")
        return cls(*parts)

    @property
    def purl(self) -> str:
        return f"pkg:maven/{self.group}/{self.name}@{self.version}"

    def __str__(self) -> str:
        return f"{self.group}:{self.name}:{self.version}"


@dataclass
class DependencyNode:
    coordinate: Coordinate
    scope: Optional[str] = None
    type: str = "jar"
    optional: bool = False
    children: List['DependencyNode'] = field(default_factory=list)


@dataclass(frozen=True)
class ServiceConfiguration:
    base_url: str = "https://ossindex.sonatype.org"
    username: Optional[str] = None
    token: Optional[str] = None
    timeout: float = 45.0
    user_agent: str = "vulngate"


@dataclass(frozen=True)
class PolicyConfiguration:
    # None means every scope is accepted
    scopes: Optional[FrozenSet[str]] = None
    transitive: bool = True
    exclude_coordinates: FrozenSet[Coordinate] = frozenset()
    exclude_vulnerability_ids: FrozenSet[str] = frozenset()
    cvss_score_threshold: float = 0.0
    service: ServiceConfiguration = field(default_factory=ServiceConfiguration)


@dataclass(frozen=True)
class VulnerabilityRecord:
    id: str
    cvss_score: float
    coordinate: Coordinate
    title: str = ""
    reference: str = ""


ReportResult = Dict[Coordinate, List[VulnerabilityRecord]]


@dataclass(frozen=True)
class Verdict:
    vulnerable: bool
    explanation: str = ""
    findings: Mapping[Coordinate, Tuple[VulnerabilityRecord, ...]] = field(default_factory=dict)
