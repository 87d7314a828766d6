"""Payer submission channels for prior authorization."""
from .payer_interface import PayerChannel, PayerResponse, PayerSubmission, PayerTransportError
from .simulated_gateway import PayerScenario, SimulatedPayerGateway
from .http_gateway import HttpPayerGateway

__all__ = [
    "PayerChannel",
    "PayerResponse",
    "PayerSubmission",
    "PayerTransportError",
    "PayerScenario",
    "SimulatedPayerGateway",
    "HttpPayerGateway",
]
