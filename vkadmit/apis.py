"""Resource types of the batch and bus API groups, with their JSON forms."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class _StrEnum(str, Enum):
    def __str__(self) -> str:
        return self.value


class Event(_StrEnum):
    """Phase of a job that a lifecycle policy can react to."""

    ANY = "*"
    POD_FAILED = "PodFailed"
    POD_EVICTED = "PodEvicted"
    JOB_UNKNOWN = "Unknown"
    OUT_OF_SYNC = "OutOfSync"
    COMMAND_ISSUED = "CommandIssued"
    TASK_COMPLETED = "TaskCompleted"


class Action(_StrEnum):
    """Action the job controller takes in answer to an event."""

    ABORT_JOB = "AbortJob"
    RESTART_JOB = "RestartJob"
    RESTART_TASK = "RestartTask"
    TERMINATE_JOB = "TerminateJob"
    COMPLETE_JOB = "CompleteJob"
    RESUME_JOB = "ResumeJob"
    SYNC_JOB = "SyncJob"
    ENQUEUE = "EnqueueJob"


class JobEvent(_StrEnum):
    """Reason recorded with events emitted about a job."""

    COMMAND_ISSUED = "CommandIssued"
    PLUGIN_ERROR = "PluginError"
    PVC_ERROR = "PVCError"
    POD_GROUP_ERROR = "PodGroupError"
    EXECUTE_ACTION = "ExecuteAction"
    JOB_STATUS_ERROR = "JobStatusError"


class JobPhase(_StrEnum):
    """Phase in the life of a job."""

    PENDING = "Pending"
    ABORTING = "Aborting"
    ABORTED = "Aborted"
    RUNNING = "Running"
    RESTARTING = "Restarting"
    COMPLETING = "Completing"
    COMPLETED = "Completed"
    TERMINATING = "Terminating"
    TERMINATED = "Terminated"
    FAILED = "Failed"
    INQUEUE = "Inqueue"


# Keys used in pod annotations and labels.
TASK_SPEC_KEY = "volcano.sh/task-spec"
JOB_NAME_KEY = "volcano.sh/job-name"
JOB_NAMESPACE_KEY = "volcano.sh/job-namespace"
DEFAULT_TASK_SPEC = "default"
JOB_VERSION_KEY = "volcano.sh/job-version"
JOB_TYPE_KEY = "volcano.sh/job-type"


def _text(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


@dataclass(frozen=True)
class GroupResource:
    group: str
    resource: str

    def __str__(self) -> str:
        return f"{self.resource}.{self.group}" if self.group else self.resource


@dataclass(frozen=True)
class GroupVersionKind:
    group: str
    version: str
    kind: str

    def __str__(self) -> str:
        return f"{self.group}/{self.version}, Kind={self.kind}"


@dataclass(frozen=True)
class GroupVersionResource:
    group: str
    version: str
    resource: str

    def group_resource(self) -> GroupResource:
        """Drop the version."""
        return GroupResource(self.group, self.resource)

    def __str__(self) -> str:
        return f"{self.group}/{self.version}, Resource={self.resource}"


@dataclass(frozen=True)
class GroupVersion:
    group: str
    version: str

    def with_kind(self, kind: str) -> GroupVersionKind:
        return GroupVersionKind(self.group, self.version, kind)

    def with_resource(self, resource: str) -> GroupVersionResource:
        return GroupVersionResource(self.group, self.version, resource)

    def __str__(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version


BATCH_GROUP_NAME = "batch.volcano.sh"
BUS_GROUP_NAME = "bus.volcano.sh"
BATCH_GROUP_VERSION = GroupVersion(BATCH_GROUP_NAME, "v1alpha1")
BUS_GROUP_VERSION = GroupVersion(BUS_GROUP_NAME, "v1alpha1")


def batch_resource(resource: str) -> GroupResource:
    """Qualify a resource name with the batch group."""
    return BATCH_GROUP_VERSION.with_resource(resource).group_resource()


def bus_resource(resource: str) -> GroupResource:
    """Qualify a resource name with the bus group."""
    return BUS_GROUP_VERSION.with_resource(resource).group_resource()


@dataclass
class OwnerReference:
    api_version: str = ""
    kind: str = ""
    name: str = ""
    uid: str = ""
    controller: Optional[bool] = None
    block_owner_deletion: Optional[bool] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
        }
        if self.controller is not None:
            out["controller"] = self.controller
        if self.block_owner_deletion is not None:
            out["blockOwnerDeletion"] = self.block_owner_deletion
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OwnerReference:
        return cls(
            api_version=data.get("apiVersion", ""),
            kind=data.get("kind", ""),
            name=data.get("name", ""),
            uid=data.get("uid", ""),
            controller=data.get("controller"),
            block_owner_deletion=data.get("blockOwnerDeletion"),
        )


@dataclass
class ObjectMeta:
    name: str = ""
    namespace: str = ""
    uid: str = ""
    resource_version: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    owner_references: list[OwnerReference] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for key, value in (
            ("name", self.name),
            ("namespace", self.namespace),
            ("uid", self.uid),
            ("resourceVersion", self.resource_version),
        ):
            if value:
                out[key] = value
        if self.labels:
            out["labels"] = dict(self.labels)
        if self.annotations:
            out["annotations"] = dict(self.annotations)
        if self.owner_references:
            out["ownerReferences"] = [ref.to_dict() for ref in self.owner_references]
        return out

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> ObjectMeta:
        data = data or {}
        return cls(
            name=data.get("name", ""),
            namespace=data.get("namespace", ""),
            uid=data.get("uid", ""),
            resource_version=data.get("resourceVersion", ""),
            labels=dict(data.get("labels") or {}),
            annotations=dict(data.get("annotations") or {}),
            owner_references=[
                OwnerReference.from_dict(ref) for ref in data.get("ownerReferences") or []
            ],
        )


@dataclass
class LifecyclePolicy:
    """Error handling of a task or job: an event or an exit code, and an action."""

    action: str = ""
    event: str = ""
    exit_code: Optional[int] = None
    timeout: Optional[str] = None

    def __post_init__(self) -> None:
        self.action = _text(self.action)
        self.event = _text(self.event)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.action:
            out["action"] = self.action
        if self.event:
            out["event"] = self.event
        if self.exit_code is not None:
            out["ExitCode"] = self.exit_code
        if self.timeout is not None:
            out["timeout"] = self.timeout
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LifecyclePolicy:
        return cls(
            action=data.get("action", ""),
            event=data.get("event", ""),
            exit_code=data.get("ExitCode"),
            timeout=data.get("timeout"),
        )


@dataclass
class VolumeSpec:
    mount_path: str = ""
    volume_claim_name: str = ""
    volume_claim: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"mountPath": self.mount_path}
        if self.volume_claim_name:
            out["volumeClaimName"] = self.volume_claim_name
        if self.volume_claim is not None:
            out["volumeClaim"] = copy.deepcopy(self.volume_claim)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VolumeSpec:
        claim = data.get("volumeClaim")
        return cls(
            mount_path=data.get("mountPath", ""),
            volume_claim_name=data.get("volumeClaimName", ""),
            volume_claim=copy.deepcopy(claim) if claim is not None else None,
        )


@dataclass
class TaskSpec:
    name: str = ""
    replicas: int = 0
    template: dict[str, Any] = field(default_factory=dict)
    policies: list[LifecyclePolicy] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.name:
            out["name"] = self.name
        if self.replicas:
            out["replicas"] = self.replicas
        out["template"] = copy.deepcopy(self.template)
        if self.policies:
            out["policies"] = [p.to_dict() for p in self.policies]
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaskSpec:
        return cls(
            name=data.get("name", ""),
            replicas=data.get("replicas", 0),
            template=copy.deepcopy(data.get("template") or {}),
            policies=[LifecyclePolicy.from_dict(p) for p in data.get("policies") or []],
        )


@dataclass
class JobSpec:
    scheduler_name: str = ""
    min_available: int = 0
    volumes: list[VolumeSpec] = field(default_factory=list)
    tasks: list[TaskSpec] = field(default_factory=list)
    policies: list[LifecyclePolicy] = field(default_factory=list)
    plugins: dict[str, list[str]] = field(default_factory=dict)
    queue: str = ""
    max_retry: int = 0
    ttl_seconds_after_finished: Optional[int] = None
    priority_class_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.scheduler_name:
            out["schedulerName"] = self.scheduler_name
        if self.min_available:
            out["minAvailable"] = self.min_available
        if self.volumes:
            out["volumes"] = [v.to_dict() for v in self.volumes]
        if self.tasks:
            out["tasks"] = [t.to_dict() for t in self.tasks]
        if self.policies:
            out["policies"] = [p.to_dict() for p in self.policies]
        if self.plugins:
            out["plugins"] = {name: list(args) for name, args in self.plugins.items()}
        if self.queue:
            out["queue"] = self.queue
        if self.max_retry:
            out["maxRetry"] = self.max_retry
        if self.ttl_seconds_after_finished is not None:
            out["ttlSecondsAfterFinished"] = self.ttl_seconds_after_finished
        if self.priority_class_name:
            out["priorityClassName"] = self.priority_class_name
        return out

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> JobSpec:
        data = data or {}
        return cls(
            scheduler_name=data.get("schedulerName", ""),
            min_available=data.get("minAvailable", 0),
            volumes=[VolumeSpec.from_dict(v) for v in data.get("volumes") or []],
            tasks=[TaskSpec.from_dict(t) for t in data.get("tasks") or []],
            policies=[LifecyclePolicy.from_dict(p) for p in data.get("policies") or []],
            plugins={
                name: list(args or []) for name, args in (data.get("plugins") or {}).items()
            },
            queue=data.get("queue", ""),
            max_retry=data.get("maxRetry", 0),
            ttl_seconds_after_finished=data.get("ttlSecondsAfterFinished"),
            priority_class_name=data.get("priorityClassName", ""),
        )


@dataclass
class JobState:
    phase: str = ""
    reason: str = ""
    message: str = ""
    last_transition_time: Optional[str] = None

    def __post_init__(self) -> None:
        self.phase = _text(self.phase)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.phase:
            out["phase"] = self.phase
        if self.reason:
            out["reason"] = self.reason
        if self.message:
            out["message"] = self.message
        if self.last_transition_time is not None:
            out["lastTransitionTime"] = self.last_transition_time
        return out

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> JobState:
        data = data or {}
        return cls(
            phase=data.get("phase", ""),
            reason=data.get("reason", ""),
            message=data.get("message", ""),
            last_transition_time=data.get("lastTransitionTime"),
        )


_STATUS_COUNTERS = (
    ("min_available", "minAvailable"),
    ("pending", "pending"),
    ("running", "running"),
    ("succeeded", "Succeeded"),
    ("failed", "failed"),
    ("terminating", "terminating"),
    ("version", "version"),
    ("retry_count", "retryCount"),
)


@dataclass
class JobStatus:
    state: JobState = field(default_factory=JobState)
    min_available: int = 0
    pending: int = 0
    running: int = 0
    succeeded: int = 0
    failed: int = 0
    terminating: int = 0
    version: int = 0
    retry_count: int = 0
    controlled_resources: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"state": self.state.to_dict()}
        for attr, key in _STATUS_COUNTERS:
            value = getattr(self, attr)
            if value:
                out[key] = value
        if self.controlled_resources:
            out["controlledResources"] = dict(self.controlled_resources)
        return out

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> JobStatus:
        data = data or {}
        counters = {attr: data.get(key, 0) for attr, key in _STATUS_COUNTERS}
        return cls(
            state=JobState.from_dict(data.get("state")),
            controlled_resources=dict(data.get("controlledResources") or {}),
            **counters,
        )


def _type_meta(api_version: str, kind: str) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if kind:
        out["kind"] = kind
    if api_version:
        out["apiVersion"] = api_version
    return out


@dataclass
class Job:
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: JobSpec = field(default_factory=JobSpec)
    status: JobStatus = field(default_factory=JobStatus)
    api_version: str = ""
    kind: str = ""

    def to_dict(self) -> dict[str, Any]:
        out = _type_meta(self.api_version, self.kind)
        out["metadata"] = self.metadata.to_dict()
        out["spec"] = self.spec.to_dict()
        out["status"] = self.status.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Job:
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            spec=JobSpec.from_dict(data.get("spec")),
            status=JobStatus.from_dict(data.get("status")),
            api_version=data.get("apiVersion", ""),
            kind=data.get("kind", ""),
        )


@dataclass
class JobList:
    items: list[Job] = field(default_factory=list)
    resource_version: str = ""
    api_version: str = ""
    kind: str = ""

    def to_dict(self) -> dict[str, Any]:
        out = _type_meta(self.api_version, self.kind)
        meta = {"resourceVersion": self.resource_version} if self.resource_version else {}
        out["metadata"] = meta
        out["items"] = [job.to_dict() for job in self.items]
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JobList:
        return cls(
            items=[Job.from_dict(item) for item in data.get("items") or []],
            resource_version=(data.get("metadata") or {}).get("resourceVersion", ""),
            api_version=data.get("apiVersion", ""),
            kind=data.get("kind", ""),
        )


@dataclass
class Command:
    """A request to act on a target object, such as a job."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    action: str = ""
    target: Optional[OwnerReference] = None
    reason: str = ""
    message: str = ""
    api_version: str = ""
    kind: str = ""

    def __post_init__(self) -> None:
        self.action = _text(self.action)

    def to_dict(self) -> dict[str, Any]:
        out = _type_meta(self.api_version, self.kind)
        out["metadata"] = self.metadata.to_dict()
        if self.action:
            out["action"] = self.action
        if self.target is not None:
            out["target"] = self.target.to_dict()
        if self.reason:
            out["reason"] = self.reason
        if self.message:
            out["message"] = self.message
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Command:
        target = data.get("target")
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            action=data.get("action", ""),
            target=OwnerReference.from_dict(target) if target is not None else None,
            reason=data.get("reason", ""),
            message=data.get("message", ""),
            api_version=data.get("apiVersion", ""),
            kind=data.get("kind", ""),
        )


@dataclass
class CommandList:
    items: list[Command] = field(default_factory=list)
    resource_version: str = ""
    api_version: str = ""
    kind: str = ""

    def to_dict(self) -> dict[str, Any]:
        out = _type_meta(self.api_version, self.kind)
        meta = {"resourceVersion": self.resource_version} if self.resource_version else {}
        out["metadata"] = meta
        out["items"] = [cmd.to_dict() for cmd in self.items]
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CommandList:
        return cls(
            items=[Command.from_dict(item) for item in data.get("items") or []],
            resource_version=(data.get("metadata") or {}).get("resourceVersion", ""),
            api_version=data.get("apiVersion", ""),
            kind=data.get("kind", ""),
        )