"""Validation package."""

from balancer.validation.gate import CommitGate

__all__ = ["CommitGate"]
