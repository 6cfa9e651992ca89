import logging
from typing import Dict, List, Tuple

from vulngate.core.model import (
    Coordinate,
    PolicyConfiguration,
    ReportResult,
    Verdict,
    VulnerabilityRecord,
)


def is_actionable(score: float, threshold: float) -> bool:
    """A score is actionable iff it is not below the threshold (score >= threshold)."""
    return not score < threshold


def filter_records(records: List[VulnerabilityRecord],
                   config: PolicyConfiguration) -> Tuple[VulnerabilityRecord, ...]:
    survivors = []
    for record in records:
        if record.id in config.exclude_vulnerability_ids:
            logging.debug(f"Ignoring excluded vulnerability {record.id} on {record.coordinate}")
            continue
        if not is_actionable(record.cvss_score, config.cvss_score_threshold):
            continue
        survivors.append(record)
    return tuple(survivors)


def evaluate(report: ReportResult, config: PolicyConfiguration) -> Verdict:
    """Applies coordinate exclusions, vulnerability-id exclusions and the threshold, in that order."""
    findings: Dict[Coordinate, Tuple[VulnerabilityRecord, ...]] = {}

    for coordinate, records in report.items():
        if coordinate in config.exclude_coordinates:
            logging.debug(f"Ignoring excluded component {coordinate}")
            continue

        survivors = filter_records(records, config)
        if survivors:
            findings[coordinate] = survivors

    if not findings:
        return Verdict(vulnerable=False)

    ordered = {c: findings[c] for c in sorted(findings)}
    logging.info(f"{len(ordered)} vulnerable components remain after policy filters.")
    return Verdict(vulnerable=True, explanation=explain(ordered), findings=ordered)


def explain(findings: Dict[Coordinate, Tuple[VulnerabilityRecord, ...]]) -> str:
    count = len(findings)
    noun = "component" if count == 1 else "components"
    lines = [f"Detected {count} vulnerable {noun}:"]

    for coordinate in sorted(findings):
        lines.append(f"  {coordinate}")
        for record in findings[coordinate]:
            line = f"    * [{record.id}]"
            if record.title:
                line += f" {record.title}"
            line += f" ({record.cvss_score})"
            if record.reference:
                line += f"; {record.reference}"
            lines.append(line)

    return "\n".join(lines)
