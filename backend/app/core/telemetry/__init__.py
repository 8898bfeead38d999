############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# __init__.py: Telemetry package exports
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Backend telemetry for ErrorWise."""

from backend.app.core.telemetry.latency_tracker import LatencyTracker, backend_key

__all__ = [
    "LatencyTracker",
    "backend_key",
]
