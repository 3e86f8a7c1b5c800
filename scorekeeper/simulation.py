"""Scripted match replay for demos and end-to-end checks."""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import Field

from .domain import DEFAULT_MATCH_ID, DocumentModel, ErrorDetail, OperationResult
from .service import ScoreService

LOGGER = logging.getLogger(__name__)

SIMULATION_AUTHOR = "simulation"
CORRECTION_AUTHOR = "simulation-correction"

# Overs 4.1 to 5.1. The six at 4.2 is a deliberate scoring error.
DEMO_SEQUENCE: tuple[dict[str, Any], ...] = (
    {"over": 4, "ball": 1, "runs": 1, "wicket": False},
    {"over": 4, "ball": 2, "runs": 6, "wicket": False},
    {"over": 4, "ball": 3, "runs": 0, "wicket": False},
    {"over": 4, "ball": 4, "runs": 4, "wicket": False},
    {"over": 4, "ball": 5, "runs": 2, "wicket": False},
    {"over": 4, "ball": 6, "runs": 1, "wicket": False},
    {"over": 5, "ball": 1, "runs": 0, "wicket": True},
)

DEMO_CORRECTION: dict[str, Any] = {"over": 4, "ball": 2, "runs": 0, "wicket": False}


class SimulatedDelivery(DocumentModel):
    key: str
    success: bool
    attempts: int
    is_correction: bool = False
    error: ErrorDetail | None = None


class SimulationReport(DocumentModel):
    match_id: str
    deliveries: list[SimulatedDelivery] = Field(default_factory=list)
    correction: SimulatedDelivery | None = None
    final_runs: int = 0
    final_wickets: int = 0
    final_overs: str = "0.0"

    @property
    def succeeded(self) -> bool:
        return all(d.success for d in self.deliveries) and (
            self.correction is None or self.correction.success
        )


async def send_with_retry(
    service: ScoreService,
    delivery: Mapping[str, Any],
    max_retries: int,
    retry_delay: float,
) -> SimulatedDelivery:
    """Apply one delivery, retrying only when storage failed.

    Rejected input is never retried: resending it cannot succeed.
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    key = f"{delivery.get('over')}.{delivery.get('ball')}"
    attempt = 1
    while True:
        result: OperationResult[Any] = await service.apply_delivery(delivery)
        if result.success:
            return SimulatedDelivery(
                key=key, success=True, attempts=attempt, is_correction=result.data.is_correction
            )

        retryable = result.error is not None and result.error.code == "STORAGE_ERROR"
        if retryable:
            LOGGER.warning(
                f"Simulated delivery failed on attempt {attempt}/{max_retries}",
                extra={"key": key, "code": result.error.code},
            )
        if not retryable or attempt == max_retries:
            return SimulatedDelivery(key=key, success=False, attempts=attempt, error=result.error)

        await asyncio.sleep(retry_delay * attempt)
        attempt += 1


async def simulate_match(
    service: ScoreService,
    match_id: str = DEFAULT_MATCH_ID,
    delay: float = 2.5,
    correction_delay: float = 3.0,
    sequence: Sequence[Mapping[str, Any]] = DEMO_SEQUENCE,
    correction: Mapping[str, Any] | None = DEMO_CORRECTION,
    max_retries: int = 3,
) -> SimulationReport:
    """Replay a delivery sequence into a match, then send a correction.

    With the defaults this scores overs 4.1 to 5.1 (14 runs, 1 wicket) and
    then corrects the six at 4.2 to a dot ball, leaving 8 runs.

    Args:
        service: Service to send the deliveries through.
        match_id: Match to score.
        delay: Seconds between deliveries.
        correction_delay: Seconds between the last delivery and the correction.
        sequence: Deliveries to send, in order.
        correction: Delivery sent last as a correction; None to skip it.
        max_retries: Attempts per delivery when storage fails.

    Raises:
        ValueError: If a delay is negative or ``max_retries`` is below 1.
    """
    if delay < 0 or correction_delay < 0:
        raise ValueError("delays must be non-negative")
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    report = SimulationReport(match_id=match_id)
    LOGGER.info("Starting simulation", extra={"match_id": match_id, "deliveries": len(sequence)})

    for index, delivery in enumerate(sequence):
        payload = {"entered_by": SIMULATION_AUTHOR, **delivery, "match_id": match_id}
        report.deliveries.append(await send_with_retry(service, payload, max_retries, delay))
        if index < len(sequence) - 1:
            await asyncio.sleep(delay)

    if correction is not None:
        await asyncio.sleep(correction_delay)
        payload = {"entered_by": CORRECTION_AUTHOR, **correction, "match_id": match_id}
        report.correction = await send_with_retry(service, payload, max_retries, delay)

    state = (await service.score(match_id)).unwrap()
    report.final_runs = state.total_runs
    report.final_wickets = state.total_wickets
    report.final_overs = state.overs

    LOGGER.info(
        "Simulation finished",
        extra={"match_id": match_id, "runs": state.total_runs, "overs": state.overs},
    )
    return report
