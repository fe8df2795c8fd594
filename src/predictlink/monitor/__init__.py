"""Autonomous dispute monitor."""

from predictlink.monitor.dispute_monitor import DisputeMonitor, IterationReport, ProposalAction

__all__ = ["DisputeMonitor", "IterationReport", "ProposalAction"]
