"""Admission webhooks for batch jobs: validation and defaulting patches."""

from __future__ import annotations

import base64
import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Union

from vkadmit.apis import (
    BATCH_GROUP_VERSION,
    DEFAULT_TASK_SPEC,
    Action,
    Event,
    GroupVersionResource,
    Job,
    LifecyclePolicy,
    TaskSpec,
    VolumeSpec,
)

logger = logging.getLogger(__name__)

ADMIT_JOB_PATH = "/jobs"
MUTATE_JOB_PATH = "/mutating-jobs"
DEFAULT_QUEUE = "default"
JSON_PATCH_TYPE = "JSONPatch"

JOB_RESOURCE = GroupVersionResource(
    BATCH_GROUP_VERSION.group, BATCH_GROUP_VERSION.version, "jobs"
)

# Every policy event and action, and whether users may set it.
POLICY_EVENTS: dict[Event, bool] = {
    Event.ANY: True,
    Event.POD_FAILED: True,
    Event.POD_EVICTED: True,
    Event.JOB_UNKNOWN: True,
    Event.TASK_COMPLETED: True,
    Event.OUT_OF_SYNC: False,
    Event.COMMAND_ISSUED: False,
}

POLICY_ACTIONS: dict[Action, bool] = {
    Action.ABORT_JOB: True,
    Action.RESTART_JOB: True,
    Action.TERMINATE_JOB: True,
    Action.COMPLETE_JOB: True,
    Action.RESUME_JOB: True,
    Action.SYNC_JOB: False,
}

_DNS1123_LABEL_MAX_LENGTH = 63
_DNS1123_LABEL_FORMAT = "[a-z0-9]([-a-z0-9]*[a-z0-9])?"
_DNS1123_LABEL_RE = re.compile(f"^{_DNS1123_LABEL_FORMAT}$")
_DNS1123_LABEL_ERROR = (
    "a DNS-1123 label must consist of lower case alphanumeric characters or '-', "
    "and must start and end with an alphanumeric character (e.g. 'my-name',  "
    f"or '123-abc', regex used for validation is '{_DNS1123_LABEL_FORMAT}')"
)


class Operation(str, Enum):
    """Operation named in an admission request."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CONNECT = "CONNECT"

    def __str__(self) -> str:
        return self.value


def _operation(value: str) -> Union[Operation, str]:
    try:
        return Operation(value)
    except ValueError:
        return value


class PolicyError(Exception):
    """One or more problems found in a list of lifecycle policies."""

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors = list(errors)
        super().__init__(str(self))

    def __str__(self) -> str:
        if len(self.errors) == 1:
            return f"1 error occurred:\n\t* {self.errors[0]}\n\n"
        points = "\n\t".join(f"* {err}" for err in self.errors)
        return f"{len(self.errors)} errors occurred:\n\t{points}\n\n"


@dataclass
class AdmissionRequest:
    uid: str = ""
    operation: Union[Operation, str] = ""
    resource: GroupVersionResource = field(
        default_factory=lambda: GroupVersionResource("", "", "")
    )
    namespace: str = ""
    name: str = ""
    object: Any = None
    old_object: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AdmissionRequest:
        resource = data.get("resource") or {}
        return cls(
            uid=data.get("uid", ""),
            operation=_operation(data.get("operation", "")),
            resource=GroupVersionResource(
                resource.get("group", ""),
                resource.get("version", ""),
                resource.get("resource", ""),
            ),
            namespace=data.get("namespace", ""),
            name=data.get("name", ""),
            object=data.get("object"),
            old_object=data.get("oldObject"),
        )


@dataclass
class AdmissionResponse:
    uid: str = ""
    allowed: bool = False
    message: Optional[str] = None
    patch: Optional[bytes] = None
    patch_type: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"uid": self.uid, "allowed": self.allowed}
        if self.message is not None:
            out["status"] = {"metadata": {}, "message": self.message}
        if self.patch:
            out["patch"] = base64.b64encode(self.patch).decode("ascii")
        if self.patch_type is not None:
            out["patchType"] = self.patch_type
        return out


@dataclass
class AdmissionReview:
    request: Optional[AdmissionRequest] = None
    response: Optional[AdmissionResponse] = None
    api_version: str = ""
    kind: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AdmissionReview:
        request = data.get("request")
        return cls(
            request=AdmissionRequest.from_dict(request) if request is not None else None,
            api_version=data.get("apiVersion", ""),
            kind=data.get("kind", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.kind:
            out["kind"] = self.kind
        if self.api_version:
            out["apiVersion"] = self.api_version
        if self.response is not None:
            out["response"] = self.response.to_dict()
        return out


def _plain(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    return value


@dataclass
class PatchOperation:
    """One operation of a JSON patch."""

    op: str
    path: str
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"op": self.op, "path": self.path}
        if self.value is not None:
            out["value"] = _plain(self.value)
        return out


def to_admission_response(err: BaseException) -> AdmissionResponse:
    """A refusing response that carries the error's message."""
    logger.error("%s", err)
    return AdmissionResponse(message=str(err))


def decode_job(raw: Any, resource: GroupVersionResource) -> Job:
    """Decode a job from a request object, checking the resource is jobs."""
    if resource != JOB_RESOURCE:
        raise ValueError(f"expect resource to be {JOB_RESOURCE}")
    if isinstance(raw, (bytes, bytearray, str)):
        data = json.loads(raw) if raw else None
    else:
        data = raw
    if not isinstance(data, dict):
        raise ValueError("object to decode is not a JSON object")
    job = Job.from_dict(data)
    logger.debug("the job struct is %r", job)
    return job


def _quoted(value: str) -> str:
    return json.dumps(str(value), ensure_ascii=False)


def validate_policies(policies: Iterable[LifecyclePolicy], field_path: str) -> None:
    """Raise PolicyError if the policies are inconsistent or not allowed."""
    errors: list[str] = []
    events: set[str] = set()
    exit_codes: set[int] = set()

    for policy in policies:
        if policy.event and policy.exit_code is not None:
            errors.append("must not specify event and exitCode simultaneously")
            break
        if not policy.event and policy.exit_code is None:
            errors.append("either event and exitCode should be specified")
            break
        if policy.event:
            if not POLICY_EVENTS.get(policy.event, False):
                errors.append(
                    f"{field_path}: Invalid value: {_quoted(policy.event)}: invalid policy event"
                )
                break
            if not POLICY_ACTIONS.get(policy.action, False):
                errors.append(
                    f"{field_path}: Invalid value: {_quoted(policy.action)}: invalid policy action"
                )
                break
            if policy.event in events:
                errors.append(f"duplicate event {policy.event}")
                break
            events.add(policy.event)
        else:
            if policy.exit_code == 0:
                errors.append("0 is not a valid error code")
                break
            if policy.exit_code in exit_codes:
                errors.append(f"duplicate exitCode {policy.exit_code}")
                break
            exit_codes.add(policy.exit_code)

    if Event.ANY.value in events and len(events) > 1:
        errors.append("if there's * here, no other policy should be here")

    if errors:
        raise PolicyError(errors)


def valid_events() -> list[Event]:
    """Policy events that users may set."""
    return [event for event, allowed in POLICY_EVENTS.items() if allowed]


def valid_actions() -> list[Action]:
    """Policy actions that users may set."""
    return [action for action, allowed in POLICY_ACTIONS.items() if allowed]


def _go_list(items: Iterable[Any]) -> str:
    return "[" + " ".join(str(item) for item in items) + "]"


def validate_io(volumes: Iterable[VolumeSpec]) -> Optional[str]:
    """The problem with the volume mounts, or None if there is none."""
    seen: set[str] = set()
    for volume in volumes:
        if not volume.mount_path:
            return " mountPath is required;"
        if volume.mount_path in seen:
            return f" duplicated mountPath: {volume.mount_path};"
        seen.add(volume.mount_path)
    return None


def is_dns1123_label(value: str) -> list[str]:
    """Reasons the value is not a DNS-1123 label; empty if it is one."""
    errors: list[str] = []
    if len(value) > _DNS1123_LABEL_MAX_LENGTH:
        errors.append(f"must be no more than {_DNS1123_LABEL_MAX_LENGTH} characters")
    if not _DNS1123_LABEL_RE.match(value):
        errors.append(_DNS1123_LABEL_ERROR)
    return errors


def patch_default_queue(job: Job) -> Optional[PatchOperation]:
    """A patch setting the default queue when the job names none."""
    if not job.spec.queue:
        return PatchOperation(op="add", path="/spec/queue", value=DEFAULT_QUEUE)
    return None


def mutate_spec(tasks: list[TaskSpec], base_path: str) -> Optional[PatchOperation]:
    """Name unnamed tasks in place; return a replacing patch if any changed."""
    patched = False
    for index, task in enumerate(tasks):
        if not task.name:
            patched = True
            task.name = f"{DEFAULT_TASK_SPEC}{index}"
    if not patched:
        return None
    return PatchOperation(op="replace", path=base_path, value=tasks)


def create_patch(job: Job) -> bytes:
    """The JSON patch that fills in a job's defaults."""
    operations = [
        op
        for op in (patch_default_queue(job), mutate_spec(job.spec.tasks, "/spec/tasks"))
        if op is not None
    ]
    if not operations:
        return b"null"
    return json.dumps([op.to_dict() for op in operations], separators=(",", ":")).encode()


QueueGetter = Callable[[str], Any]
PluginExists = Callable[[str], bool]
TemplateValidator = Callable[[TaskSpec, Job], list[str]]


class AdmissionController:
    """Validates and mutates jobs sent to the admission webhooks.

    queue_getter looks a queue up by name and raises if it does not exist;
    plugin_exists tells whether a job plugin is registered; template_validator
    returns the problems found in a task's pod template.
    """

    def __init__(
        self,
        queue_getter: QueueGetter,
        plugin_exists: Optional[PluginExists] = None,
        template_validator: Optional[TemplateValidator] = None,
    ) -> None:
        self.queue_getter = queue_getter
        self.plugin_exists = plugin_exists or (lambda name: False)
        self.template_validator = template_validator

    def _validate_template(self, task: TaskSpec, job: Job, index: int) -> str:
        if self.template_validator is None:
            return ""
        errors = self.template_validator(task, job)
        if not errors:
            return ""
        return f"spec.task[{index}]." + "".join(f"{err}. " for err in errors)

    def validate_job(self, job: Job) -> str:
        """All problems found in the job; an empty string means it is valid."""
        spec = job.spec
        if spec.min_available < 0:
            return "'minAvailable' cannot be less than zero."
        if spec.max_retry < 0:
            return "'maxRetry' cannot be less than zero."
        if spec.ttl_seconds_after_finished is not None and spec.ttl_seconds_after_finished < 0:
            return "'ttlSecondsAfterFinished' cannot be less than zero."
        if not spec.tasks:
            return "No task specified in job spec"

        msg = ""
        task_names: set[str] = set()
        total_replicas = 0
        events_text = _go_list(valid_events())
        actions_text = _go_list(valid_actions())

        for index, task in enumerate(spec.tasks):
            if task.replicas <= 0:
                msg += f" 'replicas' is not set positive in task: {task.name};"
            total_replicas += task.replicas

            label_errors = is_dns1123_label(task.name)
            if label_errors:
                msg += f" {_go_list(label_errors)};"

            if task.name in task_names:
                msg += f" duplicated task name {task.name};"
                break
            task_names.add(task.name)

            try:
                validate_policies(task.policies, "spec.tasks.policies")
            except PolicyError as err:
                msg += f"{err} valid events are {events_text}, valid actions are {actions_text}"

            msg += self._validate_template(task, job, index)

        if total_replicas < spec.min_available:
            msg += " 'minAvailable' should not be greater than total replicas in tasks;"

        try:
            validate_policies(spec.policies, "spec.policies")
        except PolicyError as err:
            msg += f"{err} valid events are {events_text}, valid actions are {actions_text};"

        for name in spec.plugins:
            if not self.plugin_exists(name):
                msg += f" unable to find job plugin: {name}"

        io_problem = validate_io(spec.volumes)
        if io_problem is not None:
            msg += io_problem

        try:
            self.queue_getter(spec.queue)
        except Exception as err:  # any lookup failure refuses the job
            msg += f"Job not created with error: {err}"

        return msg

    def admit_jobs(self, review: AdmissionReview) -> AdmissionResponse:
        """Answer a validating admission review."""
        request = review.request or AdmissionRequest()
        logger.debug("admitting jobs -- %s", request.operation)
        try:
            job = decode_job(request.object, request.resource)
        except ValueError as err:
            return to_admission_response(err)

        response = AdmissionResponse(allowed=True)
        msg = ""
        if request.operation == Operation.CREATE:
            msg = self.validate_job(job)
            response.allowed = msg == ""
        elif request.operation == Operation.UPDATE:
            try:
                decode_job(request.old_object, request.resource)
            except ValueError as err:
                return to_admission_response(err)
        else:
            return to_admission_response(
                ValueError("expect operation to be 'CREATE' or 'UPDATE'")
            )

        if not response.allowed:
            response.message = msg.strip()
        return response

    def mutate_jobs(self, review: AdmissionReview) -> AdmissionResponse:
        """Answer a mutating admission review with a defaulting patch."""
        request = review.request or AdmissionRequest()
        logger.debug("mutating jobs")
        try:
            job = decode_job(request.object, request.resource)
        except ValueError as err:
            return to_admission_response(err)

        if request.operation != Operation.CREATE:
            return to_admission_response(ValueError("expect operation to be 'CREATE' "))

        response = AdmissionResponse(allowed=True)
        try:
            patch = create_patch(job)
        except (TypeError, ValueError) as err:
            response.message = str(err)
            return response
        logger.debug("AdmissionResponse: patch=%s", patch.decode())
        response.patch = patch
        response.patch_type = JSON_PATCH_TYPE
        return response