"""
Runbook RAG

Turns infrastructure alerts into troubleshooting checklists by retrieving
runbook sections and synthesizing them with a generative model.
"""

__version__ = "0.1.0"
