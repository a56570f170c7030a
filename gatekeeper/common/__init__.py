"""Common utilities for Gatekeeper."""

from .logger import OUTCOME_CHECK_FAILED, OUTCOME_DENIED, OutcomeFilter, setup_logger

__all__ = ["OUTCOME_CHECK_FAILED", "OUTCOME_DENIED", "OutcomeFilter", "setup_logger"]
