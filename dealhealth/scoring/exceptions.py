"""
Deal Health Exceptions
Custom exceptions for health score orchestration.
"""

from typing import Any


class DealHealthError(Exception):
    """Base exception for deal health scoring."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class DealNotFoundError(DealHealthError):
    """Raised when the deal to score does not exist."""

    def __init__(self, deal_id: Any):
        self.deal_id = deal_id
        super().__init__(f"Deal {deal_id} not found")
