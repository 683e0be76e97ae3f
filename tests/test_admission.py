import base64
import copy
import json

import pytest

from vkadmit.admission import (
    JOB_RESOURCE,
    AdmissionController,
    AdmissionRequest,
    AdmissionResponse,
    AdmissionReview,
    Operation,
    PatchOperation,
    PolicyError,
    create_patch,
    decode_job,
    is_dns1123_label,
    mutate_spec,
    patch_default_queue,
    to_admission_response,
    valid_actions,
    valid_events,
    validate_io,
    validate_policies,
)
from vkadmit.apis import (
    Action,
    Event,
    GroupVersionResource,
    Job,
    JobSpec,
    LifecyclePolicy,
    ObjectMeta,
    TaskSpec,
    VolumeSpec,
)

TEMPLATE = {
    "metadata": {"labels": {"name": "test"}},
    "spec": {"containers": [{"name": "fake-name", "image": "busybox:1.24"}]},
}


def _task(name="task-1", replicas=1, policies=None):
    return TaskSpec(
        name=name, replicas=replicas, template=copy.deepcopy(TEMPLATE), policies=policies or []
    )


def _job(name="job", **spec):
    spec.setdefault("min_available", 1)
    spec.setdefault("queue", "default")
    spec.setdefault("tasks", [_task()])
    return Job(metadata=ObjectMeta(name=name, namespace="test"), spec=JobSpec(**spec))


def _queue_getter(name):
    if name != "default":
        raise LookupError(f'queues "{name}" not found')
    return {"name": name, "weight": 1}


@pytest.fixture
def controller():
    return AdmissionController(_queue_getter)


def test_valid_job(controller):
    assert controller.validate_job(_job()) == ""


INVALID_CASES = [
    (
        "duplicate-task",
        _job(tasks=[_task("duplicated-task-1"), _task("duplicated-task-1")]),
        "duplicated task name duplicated-task-1",
    ),
    (
        "policy-duplicated",
        _job(
            policies=[
                LifecyclePolicy(event=Event.POD_FAILED, action=Action.ABORT_JOB),
                LifecyclePolicy(event=Event.POD_FAILED, action=Action.RESTART_JOB),
            ]
        ),
        "duplicate",
    ),
    (
        "min-available-illegal",
        _job(min_available=2),
        "'minAvailable' should not be greater than total replicas in tasks",
    ),
    (
        "plugin-illegal",
        _job(plugins={"big_plugin": []}),
        "unable to find job plugin: big_plugin",
    ),
    (
        "ttl-illegal",
        _job(ttl_seconds_after_finished=-1),
        "'ttlSecondsAfterFinished' cannot be less than zero",
    ),
    ("min-available-negative", _job(min_available=-1), "'minAvailable' cannot be less than zero."),
    ("max-retry-negative", _job(max_retry=-1), "'maxRetry' cannot be less than zero."),
    ("no-task", _job(tasks=[]), "No task specified in job spec"),
    (
        "replica-negative",
        _job(tasks=[_task(replicas=-1)]),
        "'replicas' is not set positive in task: task-1;",
    ),
    (
        "non-dns-task",
        _job(tasks=[_task("Task-1")]),
        "[a DNS-1123 label must consist of lower case alphanumeric characters or '-', and "
        "must start and end with an alphanumeric character (e.g. 'my-name',  "
        "or '123-abc', regex used for validation is '[a-z0-9]([-a-z0-9]*[a-z0-9])?')];",
    ),
    (
        "policy-with-exit-code",
        _job(
            policies=[
                LifecyclePolicy(event=Event.POD_FAILED, action=Action.ABORT_JOB, exit_code=-1)
            ]
        ),
        "must not specify event and exitCode simultaneously",
    ),
    (
        "policy-no-event-no-exit-code",
        _job(policies=[LifecyclePolicy(action=Action.ABORT_JOB)]),
        "either event and exitCode should be specified",
    ),
    (
        "invalid-policy-event",
        _job(policies=[LifecyclePolicy(event="someFakeEvent", action=Action.ABORT_JOB)]),
        "invalid policy event",
    ),
    (
        "invalid-policy-action",
        _job(policies=[LifecyclePolicy(event=Event.POD_EVICTED, action="someFakeAction")]),
        "invalid policy action",
    ),
    (
        "policy-exit-code-zero",
        _job(policies=[LifecyclePolicy(action=Action.ABORT_JOB, exit_code=0)]),
        "0 is not a valid error code",
    ),
    (
        "duplicate-exit-code",
        _job(policies=[LifecyclePolicy(exit_code=1), LifecyclePolicy(exit_code=1)]),
        "duplicate exitCode 1",
    ),
    (
        "any-event-with-others",
        _job(
            policies=[
                LifecyclePolicy(event=Event.ANY, action=Action.ABORT_JOB),
                LifecyclePolicy(event=Event.POD_FAILED, action=Action.RESTART_JOB),
            ]
        ),
        "if there's * here, no other policy should be here",
    ),
    (
        "invalid-mount-volume",
        _job(
            policies=[LifecyclePolicy(event=Event.ANY, action=Action.ABORT_JOB)],
            volumes=[VolumeSpec(mount_path="")],
        ),
        " mountPath is required;",
    ),
    (
        "duplicate-mount-volume",
        _job(
            policies=[LifecyclePolicy(event=Event.ANY, action=Action.ABORT_JOB)],
            volumes=[VolumeSpec(mount_path="/var"), VolumeSpec(mount_path="/var")],
        ),
        " duplicated mountPath: /var;",
    ),
    (
        "task-policy-any-with-others",
        _job(
            tasks=[
                _task(
                    policies=[
                        LifecyclePolicy(event=Event.ANY, action=Action.ABORT_JOB),
                        LifecyclePolicy(event=Event.POD_FAILED, action=Action.RESTART_JOB),
                    ]
                )
            ]
        ),
        "if there's * here, no other policy should be here",
    ),
    ("no-queue", _job(queue="jobQueue"), "Job not created with error: "),
]


@pytest.mark.parametrize("name,job,expected", INVALID_CASES, ids=[c[0] for c in INVALID_CASES])
def test_invalid_jobs(controller, name, job, expected):
    msg = controller.validate_job(job)
    assert msg != ""
    assert expected in msg


def test_invalid_policy_event_names_field_and_value(controller):
    job = _job(policies=[LifecyclePolicy(event="someFakeEvent", action=Action.ABORT_JOB)])
    msg = controller.validate_job(job)
    assert 'spec.policies: Invalid value: "someFakeEvent": invalid policy event' in msg
    assert "valid events are [* PodFailed PodEvicted Unknown TaskCompleted]" in msg


def test_template_validator_messages():
    ctrl = AdmissionController(_queue_getter, template_validator=lambda task, job: ["bad", "worse"])
    assert ctrl.validate_job(_job()) == "spec.task[0].bad. worse. "


def test_plugin_exists_accepts_known_plugin():
    ctrl = AdmissionController(_queue_getter, plugin_exists=lambda name: name == "ssh")
    assert ctrl.validate_job(_job(plugins={"ssh": []})) == ""


def test_validate_policies_errors():
    with pytest.raises(PolicyError) as info:
        validate_policies([LifecyclePolicy(exit_code=0)], "spec.policies")
    assert info.value.errors == ["0 is not a valid error code"]
    assert str(info.value) == "1 error occurred:\n\t* 0 is not a valid error code\n\n"


def test_validate_policies_accepts_valid():
    policies = [
        LifecyclePolicy(event=Event.POD_FAILED, action=Action.RESTART_JOB),
        LifecyclePolicy(exit_code=3, action=Action.ABORT_JOB),
    ]
    assert validate_policies(policies, "spec.policies") is None


def test_valid_events_and_actions():
    assert set(valid_events()) == {
        Event.ANY,
        Event.POD_FAILED,
        Event.POD_EVICTED,
        Event.JOB_UNKNOWN,
        Event.TASK_COMPLETED,
    }
    assert Action.SYNC_JOB not in valid_actions()
    assert len(valid_actions()) == 5


def test_validate_io():
    assert validate_io([VolumeSpec(mount_path="/a"), VolumeSpec(mount_path="/b")]) is None
    assert validate_io([VolumeSpec(mount_path="/a"), VolumeSpec(mount_path="/a")]) == (
        " duplicated mountPath: /a;"
    )


def test_is_dns1123_label():
    assert is_dns1123_label("task-1") == []
    assert is_dns1123_label("a" * 64) == ["must be no more than 63 characters"]
    assert len(is_dns1123_label("-bad")) == 1


def test_mutate_spec_names_tasks():
    tasks = [_task(name=""), _task(name="")]
    op = mutate_spec(tasks, "/spec/tasks")
    assert op.op == "replace"
    assert op.path == "/spec/tasks"
    assert [t.name for t in op.value] == ["default0", "default1"]


def test_mutate_spec_without_changes():
    assert mutate_spec([_task("a")], "/spec/tasks") is None


def test_patch_default_queue():
    op = patch_default_queue(_job(queue=""))
    assert op.to_dict() == {"op": "add", "path": "/spec/queue", "value": "default"}
    assert patch_default_queue(_job()) is None


def test_create_patch():
    patch = json.loads(create_patch(_job(queue="")))
    assert patch == [{"op": "add", "path": "/spec/queue", "value": "default"}]
    assert create_patch(_job()) == b"null"


def test_patch_operation_omits_missing_value():
    assert PatchOperation(op="remove", path="/x").to_dict() == {"op": "remove", "path": "/x"}


def test_decode_job_wrong_resource():
    with pytest.raises(ValueError, match="expect resource to be batch.volcano.sh/v1alpha1"):
        decode_job(b"{}", GroupVersionResource("", "v1", "pods"))


def test_decode_job_reads_json():
    job = decode_job(json.dumps(_job().to_dict()), JOB_RESOURCE)
    assert job.spec.tasks[0].name == "task-1"
    assert job.metadata.namespace == "test"


def test_to_admission_response():
    resp = to_admission_response(ValueError("boom"))
    assert resp.allowed is False
    assert resp.to_dict()["status"]["message"] == "boom"


def _review(job, operation="CREATE", resource=None):
    res = resource or {"group": "batch.volcano.sh", "version": "v1alpha1", "resource": "jobs"}
    return AdmissionReview.from_dict(
        {
            "request": {
                "uid": "uid-1",
                "operation": operation,
                "resource": res,
                "object": job.to_dict(),
                "oldObject": job.to_dict(),
            }
        }
    )


def test_review_from_dict():
    review = _review(_job())
    assert review.request.operation is Operation.CREATE
    assert review.request.resource == JOB_RESOURCE


def test_admit_jobs(controller):
    assert controller.admit_jobs(_review(_job())).allowed is True
    resp = controller.admit_jobs(_review(_job(max_retry=-1)))
    assert resp.allowed is False
    assert resp.message == "'maxRetry' cannot be less than zero."


def test_admit_jobs_update_allowed(controller):
    assert controller.admit_jobs(_review(_job(max_retry=-1), "UPDATE")).allowed is True


def test_admit_jobs_bad_operation(controller):
    resp = controller.admit_jobs(_review(_job(), "DELETE"))
    assert resp.allowed is False
    assert resp.message == "expect operation to be 'CREATE' or 'UPDATE'"


def test_mutate_jobs(controller):
    resp = controller.mutate_jobs(_review(_job(queue="")))
    assert resp.allowed is True
    assert resp.patch_type == "JSONPatch"
    encoded = resp.to_dict()["patch"]
    assert json.loads(base64.b64decode(encoded)) == [
        {"op": "add", "path": "/spec/queue", "value": "default"}
    ]


def test_mutate_jobs_rejects_update(controller):
    resp = controller.mutate_jobs(_review(_job(), "UPDATE"))
    assert resp.allowed is False
    assert resp.message == "expect operation to be 'CREATE' "


def test_admission_review_to_dict():
    review = AdmissionReview(response=AdmissionResponse(uid="u", allowed=True))
    assert review.to_dict() == {"response": {"uid": "u", "allowed": True}}


def test_admission_request_defaults():
    req = AdmissionRequest.from_dict({"operation": "PATCH"})
    assert req.operation == "PATCH"
    assert req.object is None