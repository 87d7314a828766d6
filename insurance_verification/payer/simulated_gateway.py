"""Simulated payer channel with scenario-driven behavior."""
import asyncio
import random
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional
from uuid import uuid4

from insurance_verification.payer.payer_interface import (
    PayerChannel,
    PayerResponse,
    PayerSubmission,
    PayerTransportError,
)
from insurance_verification.config.logging_config import get_logger

logger = get_logger(__name__)

MORE_INFO_MESSAGE = (
    "Prior authorization requires additional clinical documentation. "
    "Please provide more details about the medical necessity."
)


class PayerScenario(str, Enum):
    """Behaviors the simulated payer can be set to."""
    APPROVE = "approve"
    MORE_INFO = "more_info"
    RANDOM = "random"
    UNAVAILABLE = "unavailable"


class SimulatedPayerGateway(PayerChannel):
    """
    Configurable mock payer.

    ``random`` approves with probability ``approval_rate``; ``unavailable``
    fails every submission with a transport error.
    """

    def __init__(
        self,
        scenario: str = PayerScenario.RANDOM.value,
        approval_rate: float = 0.7,
        rng: Optional[random.Random] = None,
        latency_seconds: float = 0.0,
    ):
        self._scenario = PayerScenario(scenario)
        self.approval_rate = approval_rate
        self._rng = rng or random.Random()
        self.latency_seconds = latency_seconds
        self.submissions: Dict[str, PayerSubmission] = {}
        logger.info("Simulated payer initialized", scenario=self._scenario.value, approval_rate=approval_rate)

    @property
    def channel_name(self) -> str:
        return "simulated"

    @property
    def scenario(self) -> PayerScenario:
        return self._scenario

    def set_scenario(self, scenario: str) -> None:
        self._scenario = PayerScenario(scenario)
        logger.info("Simulated payer scenario changed", scenario=self._scenario.value)

    def _approves(self) -> bool:
        if self._scenario == PayerScenario.APPROVE:
            return True
        if self._scenario == PayerScenario.MORE_INFO:
            return False
        return self._rng.random() < self.approval_rate

    async def submit(self, submission: PayerSubmission) -> PayerResponse:
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)

        if self._scenario == PayerScenario.UNAVAILABLE:
            logger.warning("Simulated payer unavailable", request_id=submission.request_id)
            raise PayerTransportError("Payer service unavailable", status_code=503)

        self.submissions[submission.request_id] = submission

        if self._approves():
            auth_number = f"AUTH-{datetime.now(timezone.utc).strftime('%Y%m%d')}-{uuid4().hex[:8].upper()}"
            logger.info("Simulated payer approved", request_id=submission.request_id, auth_number=auth_number)
            return PayerResponse(
                approved=True,
                auth_number=auth_number,
                message=f"Prior authorization approved. Authorization number: {auth_number}",
            )

        logger.info("Simulated payer requested more information", request_id=submission.request_id)
        return PayerResponse(approved=False, message=MORE_INFO_MESSAGE)
