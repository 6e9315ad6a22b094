"""
Workflows package - Sample workflow definitions.
"""

from mcpflow.workflows.text_analysis import create_text_analysis_workflow, register_text_analysis_workflow

__all__ = [
    "create_text_analysis_workflow",
    "register_text_analysis_workflow",
]
