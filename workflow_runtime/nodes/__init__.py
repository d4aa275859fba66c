"""Workflow node implementations."""

from .base import BaseNode
from .start import StartNode
from .transform import TransformNode
from .decision import DecisionNode
from .human import HumanNode
from .agent import AgentNode
from .end import EndNode

__all__ = [
    "BaseNode",
    "StartNode",
    "TransformNode",
    "DecisionNode",
    "HumanNode",
    "AgentNode",
    "EndNode",
]
