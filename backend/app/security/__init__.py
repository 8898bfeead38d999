############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# __init__.py: Security utilities package exports
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Admission control for ErrorWise."""

from backend.app.security.rate_limits import RateLimiter, RatePermit

__all__ = [
    "RateLimiter",
    "RatePermit",
]
