"""Synthetic request generator with deterministic seeding.

Submits a random request every 8-15 seconds until stopped. Runs as one
explicit asyncio task; ``stop()`` cancels it and waits for it to exit.
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Dict, List, Optional

from finmoe.api.schemas import SubmitResponse
from finmoe.common.constants import SimulationConstants
from finmoe.common.exceptions import ValidationError
from finmoe.core.types import Priority

logger = logging.getLogger(__name__)

Submitter = Callable[[str, Priority, Dict[str, Any]], SubmitResponse]

# Realistic data pools
EMPLOYMENT = ["salaried", "self-employed", "contractor", "retired"]
CLAIM_KINDS = ["auto collision", "water damage", "theft", "medical", "travel cancellation"]
SECTORS = ["utilities", "manufacturing", "software", "retail", "mining", "banking"]
MERCHANT_CATEGORIES = ["electronics", "travel", "groceries", "gift cards", "jewellery"]


class SyntheticRequestGenerator:
    """Feeds the dispatch service with plausible traffic."""

    def __init__(
        self,
        submit: Submitter,
        request_types=SimulationConstants.REQUEST_TYPES,
        min_interval: float = SimulationConstants.MIN_INTERVAL_SECONDS,
        max_interval: float = SimulationConstants.MAX_INTERVAL_SECONDS,
        seed: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize generator.

        Args:
            submit: Called with (type, priority, payload) for each request
            request_types: Type labels to draw from
            min_interval: Minimum delay between submissions, in seconds
            max_interval: Maximum delay between submissions, in seconds
            seed: Random seed for reproducibility
            sleep: Awaitable delay between submissions
        """
        if not 0 <= min_interval <= max_interval:
            raise ValueError(f"Invalid interval range: {min_interval}-{max_interval}")
        self._submit = submit
        self.request_types = list(request_types)
        self.min_interval = min_interval
        self.max_interval = max_interval
        self.rng = random.Random(seed)
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.submitted: List[str] = []

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start generating on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="finmoe-synthetic-generator")
        logger.info(
            f"Synthetic generator started: every {self.min_interval:.0f}-{self.max_interval:.0f}s"
        )

    async def stop(self) -> None:
        """Cancel the generator task and wait for it to finish."""
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info(f"Synthetic generator stopped after {len(self.submitted)} requests")

    def next_interval(self) -> float:
        return self.rng.uniform(self.min_interval, self.max_interval)

    def generate(self) -> Dict[str, Any]:
        """One random request: type, priority and payload."""
        request_type = self.rng.choice(self.request_types)
        priority = self.rng.choice(list(Priority))
        return {
            "type": request_type,
            "priority": priority,
            "payload": self._payload_for(request_type),
        }

    def submit_one(self) -> Optional[SubmitResponse]:
        request = self.generate()
        try:
            response = self._submit(request["type"], request["priority"], request["payload"])
        except ValidationError as e:
            logger.error(f"Synthetic request rejected: {e.message}")
            return None
        self.submitted.append(response.request_id)
        return response

    async def _loop(self) -> None:
        while True:
            await self._sleep(self.next_interval())
            self.submit_one()

    def _payload_for(self, request_type: str) -> Dict[str, Any]:
        text = request_type.lower()
        if "loan" in text or "credit" in text:
            return {
                "applicant_income": self.rng.randrange(25_000, 250_000, 1_000),
                "requested_amount": self.rng.randrange(5_000, 500_000, 500),
                "term_months": self.rng.choice([12, 24, 36, 60, 120, 360]),
                "employment": self.rng.choice(EMPLOYMENT),
                "existing_debt": self.rng.randrange(0, 80_000, 500),
            }
        if "claim" in text or "fraud" in text:
            return {
                "claim_kind": self.rng.choice(CLAIM_KINDS),
                "claim_amount": round(self.rng.uniform(200, 60_000), 2),
                "days_since_policy_start": self.rng.randint(1, 3_650),
                "prior_claims": self.rng.randint(0, 5),
                "merchant_category": self.rng.choice(MERCHANT_CATEGORIES),
            }
        if "esg" in text or "investment" in text:
            return {
                "company": f"Company-{self.rng.randint(100, 999)}",
                "sector": self.rng.choice(SECTORS),
                "carbon_intensity": round(self.rng.uniform(5, 900), 1),
                "board_independence_pct": self.rng.randint(20, 95),
                "controversies": self.rng.randint(0, 4),
            }
        return {}
