"""
Session management module.

Provides the CallController (registries + call state machine) and the
CallOrchestrator that drives one WebSocket through it.
"""
from .controller import CallController
from .orchestrator import CallOrchestrator

__all__ = ["CallController", "CallOrchestrator"]
