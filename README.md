# vkadmit

`vkadmit` checks batch job definitions and fills in their defaults before a
cluster accepts them. It holds the job and command resource models, the
validation and mutation logic that an admission webhook applies to jobs,
helpers for answering webhook requests over HTTP, and the flag handling of
the admission server and the controller manager.

It depends only on the Python standard library.

## What it covers

- **Resource models** (`vkadmit.apis`): `Job`, `JobSpec`, `TaskSpec`,
  `LifecyclePolicy`, `VolumeSpec`, `JobStatus`, `JobState`, `JobList`,
  `ObjectMeta`, `OwnerReference`, `Command` and `CommandList`, each with
  `to_dict()` and `from_dict()` for moving between objects and their JSON
  form. The enumerations `Event`, `Action`, `JobEvent` and `JobPhase` name
  lifecycle events, actions and phases. `GroupVersion`, `GroupVersionKind`,
  `GroupVersionResource` and `GroupResource` identify API types;
  `batch_resource()` and `bus_resource()` qualify a resource name with the
  `batch.volcano.sh` or `bus.volcano.sh` group.
- **Admission** (`vkadmit.admission`): `AdmissionController` validates
  jobs (`validate_job`, `admit_jobs`) and fills in defaults
  (`mutate_jobs`): a `default` queue when none is given, and the names
  `default0`, `default1`, … for unnamed tasks, returned as a JSON patch.
  The pieces can be used on their own: `validate_policies` (raises
  `PolicyError`), `validate_io`, `is_dns1123_label`, `valid_events`,
  `valid_actions`, `create_patch`, `mutate_spec`, `patch_default_queue`,
  `decode_job` and `to_admission_response`. `AdmissionReview`,
  `AdmissionRequest`, `AdmissionResponse` and `PatchOperation` model the
  review exchange.
- **Webhook serving** (`vkadmit.webhook`): `serve(body, content_type,
  admit)` turns a request body into the JSON of an admission review
  response, and returns an empty body when the content type is not
  `application/json`. `WebhookServer` routes `/jobs` and `/mutating-jobs`
  to a controller (`handle()` raises `LookupError` for other paths) and
  builds a `http.server` request handler class with `make_handler()`.
- **Admission server settings** (`vkadmit.configure`): `Config` registers
  its flags (`--port`, default 443, `--tls-cert-file`, the webhook
  configuration names, and others) on an `argparse.ArgumentParser`, takes
  the parsed values back with `apply()`, and checks the port range with
  `check_port()`. `patch_webhook_config()` computes the strategic merge
  patch that sets a CA bundle on the named webhook entry of a webhook
  configuration (an empty dict when the entry already holds it), and
  raises `WebhookNotFoundError` when the entry is missing.
- **Controller manager settings** (`vkadmit.options`): `ServerOption`
  registers `--master`, `--kubeconfig`, `--leader-elect`,
  `--lock-object-namespace`, `--kube-api-qps` (default 50),
  `--kube-api-burst` (default 100) and `--version`; `check_option()`
  requires a lock object namespace when leader election is on.
- **Ownership helpers** (`vkadmit.helpers`): `get_controller()` returns the
  UID of an object's controlling owner, and `controlled_by()` tells whether
  that owner is of a given kind (`JOB_KIND`, `COMMAND_KIND`, …).

## Validating a job

`AdmissionController` takes callables, so it works with any cluster
client or with none:

- `queue_getter(name)` looks a queue up and raises if it does not exist;
- `plugin_exists(name)` tells whether a job plugin is known (when left
  out, no plugin is known);
- `template_validator(task, job)` returns a list of problems in a task's
  pod template (when left out, templates are not checked).

```python
from vkadmit.admission import AdmissionController
from vkadmit.apis import Job

known_queues = {"default"}


def get_queue(name):
    if name not in known_queues:
        raise LookupError(f'queues "{name}" not found')
    return name


controller = AdmissionController(
    queue_getter=get_queue,
    plugin_exists=lambda name: name in {"ssh", "env", "svc"},
    template_validator=lambda task, job: [],
)

job = Job.from_dict({
    "metadata": {"name": "demo", "namespace": "test"},
    "spec": {
        "minAvailable": 1,
        "queue": "default",
        "tasks": [{"name": "task-1", "replicas": 1}],
    },
})

print(repr(controller.validate_job(job)))  # '' : the job is valid
```

The rules checked: `minAvailable`, `maxRetry` and
`ttlSecondsAfterFinished` must not be negative; a job needs at least one
task; every task needs a positive replica count and a unique DNS-1123
label as its name; `minAvailable` must not exceed the total replicas;
lifecycle policies name either an event or a non-zero exit code (never
both), without duplicates, using only allowed events and actions, and `*`
must stand alone; volume mount paths must be present and unique; plugins
and the queue must exist.

## Serving the webhooks

```python
from http.server import ThreadingHTTPServer
from vkadmit.webhook import WebhookServer

server = ThreadingHTTPServer(("", 8443), WebhookServer(controller).make_handler())
server.serve_forever()
```

## What it does not do

The package has no command to start a server and no cluster client: it
does not read kubeconfig files, set up TLS, look up queues or send the
webhook configuration patches it computes. Those are left to the caller,
through the callables given to `AdmissionController` and the handler class
from `make_handler()`. Pod templates are validated only by the
`template_validator` you supply, and the controller manager's options are
parsed and checked but nothing here runs the controllers.

## Running the tests

The tests use pytest, declared in the `test` extra:

```
pip install -e .[test]
pytest
```