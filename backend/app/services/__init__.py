############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# __init__.py: Services package exports
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Services for ErrorWise."""

from backend.app.services.orchestrator import Orchestrator, get_orchestrator
from backend.app.services.statistics import summarize_results

__all__ = ["Orchestrator", "get_orchestrator", "summarize_results"]
