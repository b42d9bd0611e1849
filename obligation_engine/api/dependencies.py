"""Dependency injection for FastAPI endpoints"""

from fastapi import Request
from obligation_engine.infrastructure.clients.charge import ChargeClient
from obligation_engine.utils.date_utils import Clock, system_clock


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_clock() -> Clock:
    """Time source for the engine; tests override with a fixed instant"""
    return system_clock


def get_charge_client() -> ChargeClient:
    """Provide charge service client instance"""
    return ChargeClient()
