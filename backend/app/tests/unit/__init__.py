############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# __init__.py: Unit test package marker
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Unit tests for ErrorWise."""
