"""
Deployment request, state machine and record.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import List, Mapping, Optional

from autodeploy.core.exceptions import InvalidDeploymentRequestError, InvalidStateTransitionError
from autodeploy.models.project_type import ProjectType

# Project ids name a directory, a container and an image tag
PROJECT_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,127}$")
ENV_KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Static path segments under /deploy that would shadow GET /deploy/{project_id}
RESERVED_PROJECT_IDS = frozenset({"health", "project-types"})


class DeploymentState(str, Enum):
    """Status of a deployment."""
    PENDING = "pending"
    CLONING = "cloning"
    DETECTING = "detecting"
    BUILDING = "building"
    DEPLOYING = "deploying"
    RUNNING = "running"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DeploymentState.RUNNING, DeploymentState.FAILED)


# Forward path; FAILED is reachable from any non-terminal state
STATE_ORDER = (
    DeploymentState.PENDING,
    DeploymentState.CLONING,
    DeploymentState.DETECTING,
    DeploymentState.BUILDING,
    DeploymentState.DEPLOYING,
    DeploymentState.RUNNING,
)


def validate_project_id(project_id: str) -> str:
    """
    Validate a project id before it is used in paths or container names.

    Raises:
        InvalidDeploymentRequestError: If the id is empty, has unsafe characters
            or is reserved
    """
    if not project_id or not PROJECT_ID_PATTERN.match(project_id):
        raise InvalidDeploymentRequestError(
            "project_id",
            "must start with a letter or digit and contain only letters, digits, '.', '_' or '-'",
        )
    if project_id in RESERVED_PROJECT_IDS:
        raise InvalidDeploymentRequestError("project_id", f"'{project_id}' is reserved")
    return project_id


@dataclass(frozen=True)
class DeploymentRequest:
    """
    A validated deployment request. Immutable once constructed.

    Optional fields are overrides honored by deploy_with_config; plain
    deploy ignores them and detects everything.
    """
    project_id: str
    git_url: str
    env: Mapping[str, str] = field(default_factory=dict)
    memory_mb: int = 512
    project_type: Optional[ProjectType] = None
    port: Optional[int] = None
    custom_recipe: Optional[str] = None
    build_command: Optional[str] = None
    start_command: Optional[str] = None
    root_directory: Optional[str] = None

    def __post_init__(self):
        validate_project_id(self.project_id)
        if not self.git_url or not self.git_url.strip():
            raise InvalidDeploymentRequestError("git_url", "must not be empty")
        if self.git_url.startswith("-"):
            raise InvalidDeploymentRequestError("git_url", "must not start with '-'")
        if self.memory_mb is None or self.memory_mb <= 0:
            raise InvalidDeploymentRequestError("memory_mb", "must be a positive integer")
        if self.port is not None and not 1 <= self.port <= 65535:
            raise InvalidDeploymentRequestError("port", "must be between 1 and 65535")
        for key in self.env or {}:
            if not ENV_KEY_PATTERN.match(key):
                raise InvalidDeploymentRequestError("env", f"invalid variable name: {key!r}")
        if self.root_directory and (
            self.root_directory.startswith("/") or ".." in self.root_directory.split("/")
        ):
            raise InvalidDeploymentRequestError("root_directory", "must be a relative path inside the repository")
        object.__setattr__(self, "env", MappingProxyType(dict(self.env or {})))


@dataclass
class DeploymentRecord:
    """
    Mutable record of one deployment call.

    Owned by the pipeline invocation that created it; returned to the
    caller as history once the call finishes.
    """
    project_id: str
    state: DeploymentState = DeploymentState.PENDING
    state_history: List[DeploymentState] = field(default_factory=lambda: [DeploymentState.PENDING])
    workspace_path: Optional[str] = None
    detected_type: Optional[ProjectType] = None
    resolved_port: Optional[int] = None
    recipe: Optional[str] = None
    image_ref: Optional[str] = None
    container_ref: Optional[str] = None
    host_port: Optional[int] = None
    revision: Optional[str] = None
    error: Optional[str] = None
    logs: List[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    def transition(self, new_state: DeploymentState) -> None:
        """
        Move to the next state.

        Raises:
            InvalidStateTransitionError: If the move skips a state, goes
                backwards, or leaves a terminal state
        """
        if self.state.is_terminal:
            raise InvalidStateTransitionError(self.state.value, new_state.value)

        if new_state is not DeploymentState.FAILED:
            current_index = STATE_ORDER.index(self.state)
            if current_index + 1 >= len(STATE_ORDER) or STATE_ORDER[current_index + 1] is not new_state:
                raise InvalidStateTransitionError(self.state.value, new_state.value)

        self.state = new_state
        self.state_history.append(new_state)
        if new_state.is_terminal:
            self.finished_at = datetime.now(timezone.utc)

    def add_log(self, message: str) -> None:
        self.logs.append(message)

    @property
    def log_text(self) -> str:
        return "\n".join(self.logs)
