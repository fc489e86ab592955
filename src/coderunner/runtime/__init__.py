"""Process orchestration runtime: staging, launching, classification, sessions."""

from .classifier import DEFAULT_CLASSIFIER, InputClassifier, needs_input
from .events import ErrorEvent, EventSink, Exited, InputRequestCleared, InputRequested, OutputEvent, RunnerEvent
from .launcher import ProcessHandle, ProcessLauncher, render_command, split_args
from .models import SessionInfo, SessionState, StagedArtifact, StreamKind
from .service import SessionRegistry, create_session_registry
from .stager import ArtifactStager, default_work_root

__all__ = [
    "ArtifactStager",
    "create_session_registry",
    "DEFAULT_CLASSIFIER",
    "default_work_root",
    "ErrorEvent",
    "EventSink",
    "Exited",
    "InputClassifier",
    "InputRequestCleared",
    "InputRequested",
    "needs_input",
    "OutputEvent",
    "ProcessHandle",
    "ProcessLauncher",
    "render_command",
    "RunnerEvent",
    "SessionInfo",
    "SessionRegistry",
    "SessionState",
    "split_args",
    "StagedArtifact",
    "StreamKind",
]
