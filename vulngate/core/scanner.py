import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Optional, Set

import httpx

from vulngate.core.errors import ReportRequestError
from vulngate.core.model import (
    Coordinate,
    PolicyConfiguration,
    ReportResult,
    ServiceConfiguration,
    VulnerabilityRecord,
)

REPORT_PATH = "/api/v3/component-report"
BATCH_SIZE = 128
MAX_CONCURRENT_BATCHES = 8

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class ComponentReportRequest:
    components: FrozenSet[Coordinate]
    exclude_coordinates: FrozenSet[Coordinate] = frozenset()
    exclude_vulnerability_ids: FrozenSet[str] = frozenset()
    cvss_score_threshold: float = 0.0
    service: ServiceConfiguration = field(default_factory=ServiceConfiguration)

    @classmethod
    def build(cls, components: Set[Coordinate], config: PolicyConfiguration) -> "ComponentReportRequest":
        return cls(
            components=frozenset(components),
            exclude_coordinates=config.exclude_coordinates,
            exclude_vulnerability_ids=config.exclude_vulnerability_ids,
            cvss_score_threshold=config.cvss_score_threshold,
            service=config.service,
        )

    def batches(self) -> List[List[Coordinate]]:
        # Sorted so the same input always produces the same requests
        ordered = sorted(self.components)
        return [ordered[i:i + BATCH_SIZE] for i in range(0, len(ordered), BATCH_SIZE)]


def request_report(components: Set[Coordinate],
                   config: PolicyConfiguration,
                   on_progress: Optional[ProgressCallback] = None,
                   transport: Optional[httpx.AsyncBaseTransport] = None) -> ReportResult:
    """Blocking entry point: submits the components and waits for the whole report."""
    request = ComponentReportRequest.build(components, config)
    return asyncio.run(fetch_component_reports(request, on_progress=on_progress, transport=transport))


async def fetch_component_reports(request: ComponentReportRequest,
                                  on_progress: Optional[ProgressCallback] = None,
                                  transport: Optional[httpx.AsyncBaseTransport] = None) -> ReportResult:
    """
    Async requester utilizing HTTPX. Batches are sent concurrently over a single client.
    Any failure aborts the whole report with ReportRequestError.
    """
    service = request.service
    batches = request.batches()
    total = len(batches)
    logging.info(f"Requesting reports for {len(request.components)} components in {total} batches...")

    if total == 0:
        return {}

    auth = None
    if service.username and service.token:
        auth = httpx.BasicAuth(service.username, service.token)

    limits = httpx.Limits(max_keepalive_connections=MAX_CONCURRENT_BATCHES, max_connections=MAX_CONCURRENT_BATCHES * 2)
    semaphore = asyncio.Semaphore(MAX_CONCURRENT_BATCHES)
    done = 0

    async def process_batch_safe(client, batch):
        nonlocal done
        async with semaphore:
            result = await process_batch(client, batch)
            done += 1
            if on_progress:
                on_progress(done, total)
            return result

    async with httpx.AsyncClient(
        base_url=service.base_url,
        auth=auth,
        timeout=service.timeout,
        limits=limits,
        headers={"User-Agent": service.user_agent},
        transport=transport,
    ) as client:
        results = await asyncio.gather(*(process_batch_safe(client, batch) for batch in batches))

    report: ReportResult = {}
    for res in results:
        report.update(res)
    return report


async def process_batch(client: httpx.AsyncClient, batch: List[Coordinate]) -> ReportResult:
    try:
        response = await client.post(REPORT_PATH, json={"coordinates": [c.purl for c in batch]})
    except httpx.HTTPError as e:
        raise ReportRequestError(f"Vulnerability service request failed: {e}") from e

    if not response.is_success:
        logging.error(f"Service error {response.status_code}: {response.text}")
        raise ReportRequestError(f"Vulnerability service returned HTTP {response.status_code}")

    try:
        payload = response.json()
    except ValueError as e:
        raise ReportRequestError("Vulnerability service returned a non-JSON body") from e

    return parse_component_reports(payload, batch)


def parse_component_reports(payload, batch: List[Coordinate]) -> ReportResult:
    """Normalizes a component-report response. Every submitted coordinate is present in the result."""
    if not isinstance(payload, list):
        raise ReportRequestError(f"Malformed report: expected a list, got {type(payload).__name__}")

    report: ReportResult = {c: [] for c in batch}

    # The service may answer with different letter case; coordinates differing
    # only by case share the first answer for them
    lookup: Dict[str, List[Coordinate]] = {}
    for coordinate in batch:
        lookup.setdefault(coordinate.purl.lower(), []).append(coordinate)

    answered = set()
    for entry in payload:
        if not isinstance(entry, dict) or not isinstance(entry.get("coordinates"), str):
            raise ReportRequestError(f"Malformed component report entry: {entry!r}")

        key = entry["coordinates"].lower()
        matches = lookup.get(key)
        if not matches:
            logging.warning(f"Ignoring report for unrequested component {entry['coordinates']}")
            continue
        if key in answered:
            continue
        answered.add(key)

        for vuln in entry.get("vulnerabilities") or []:
            for coordinate in matches:
                report[coordinate].append(_to_record(vuln, coordinate))

    return report


def _to_record(vuln, coordinate: Coordinate) -> VulnerabilityRecord:
    if not isinstance(vuln, dict) or not vuln.get("id"):
        raise ReportRequestError(f"Malformed vulnerability for {coordinate}: {vuln!r}")

    try:
        score = float(vuln.get("cvssScore") or 0.0)
    except (TypeError, ValueError) as e:
        raise ReportRequestError(f"Invalid CVSS score for {vuln['id']}: {vuln.get('cvssScore')!r}") from e

    if math.isnan(score):
        raise ReportRequestError(f"Invalid CVSS score for {vuln['id']}: NaN")

    return VulnerabilityRecord(
        id=str(vuln["id"]),
        cvss_score=score,
        coordinate=coordinate,
        title=vuln.get("title") or "",
        reference=vuln.get("reference") or "",
    )
