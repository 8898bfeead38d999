############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# __init__.py: Core package marker
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Core orchestration logic for ErrorWise."""
