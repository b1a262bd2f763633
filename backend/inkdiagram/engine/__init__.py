"""inkdiagram stroke interpretation engine."""

from inkdiagram.engine.cancellation import CancellationToken
from inkdiagram.engine.collaborator import Collaborator, HttpCollaborator
from inkdiagram.engine.orchestrator import InterpretParams, ProcessingState, Progress, StageOrchestrator
from inkdiagram.engine.session import InterpretSession

__all__ = [
    "CancellationToken",
    "Collaborator",
    "HttpCollaborator",
    "InterpretParams",
    "ProcessingState",
    "Progress",
    "StageOrchestrator",
    "InterpretSession",
]
