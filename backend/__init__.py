############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# __init__.py: Root package initialization and version definition
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""ErrorWise - Tiered LLM Analysis Orchestrator."""

__version__ = "0.3.0"
