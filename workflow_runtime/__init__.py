"""Workflow runtime: executes JSON-defined graphs of start, transform,
decision, human, agent and end nodes."""

__version__ = "0.1.0"
