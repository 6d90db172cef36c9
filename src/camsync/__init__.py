"""
camsync - configuration sync engine for battery snapshot cameras.

Reads every parameter group from the camera's embedded HTTP API, keeps one
in-memory copy per group and writes user edits back through a single
serialised request channel.
"""

__version__ = "0.1.0"

from camsync.core.orchestrator import SessionOrchestrator, StartupReport

__all__ = ["SessionOrchestrator", "StartupReport", "__version__"]
