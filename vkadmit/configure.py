"""Settings of the admission server and CA bundle patching of webhook configs."""

from __future__ import annotations

import argparse
import base64
import binascii
import json
from dataclasses import dataclass, fields
from typing import Any

_TRUE_WORDS = {"1", "t", "T", "true", "TRUE", "True"}
_FALSE_WORDS = {"0", "f", "F", "false", "FALSE", "False"}


def _flag_bool(text: str) -> bool:
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


class WebhookNotFoundError(LookupError):
    """The named webhook entry is missing from a webhook configuration."""

    def __init__(self, webhook_name: str, webhook_config_name: str) -> None:
        self.webhook_name = webhook_name
        self.webhook_config_name = webhook_config_name
        super().__init__(
            "Internal error occurred: webhook entry "
            f"{json.dumps(webhook_name)} not found in config {json.dumps(webhook_config_name)}"
        )


@dataclass
class Config:
    """Settings of the admission server."""

    master: str = ""
    kubeconfig: str = ""
    cert_file: str = ""
    key_file: str = ""
    ca_cert_file: str = ""
    port: int = 0
    mutate_webhook_config_name: str = ""
    mutate_webhook_name: str = ""
    validate_webhook_config_name: str = ""
    validate_webhook_name: str = ""
    print_version: bool = False

    def add_flags(self, parser: argparse.ArgumentParser) -> None:
        """Register the server's flags on the parser."""
        parser.add_argument(
            "--master",
            dest="master",
            default=self.master,
            help="The address of the Kubernetes API server (overrides any value in kubeconfig)",
        )
        parser.add_argument(
            "--kubeconfig",
            dest="kubeconfig",
            default=self.kubeconfig,
            help="Path to kubeconfig file with authorization and master location information.",
        )
        parser.add_argument(
            "--tls-cert-file",
            dest="cert_file",
            default=self.cert_file,
            help="File containing the default x509 Certificate for HTTPS. "
            "(CA cert, if any, concatenated after server cert).",
        )
        parser.add_argument(
            "--tls-private-key-file",
            dest="key_file",
            default=self.key_file,
            help="File containing the default x509 private key matching --tls-cert-file.",
        )
        parser.add_argument(
            "--ca-cert-file",
            dest="ca_cert_file",
            default=self.ca_cert_file,
            help="File containing the x509 Certificate for HTTPS.",
        )
        parser.add_argument(
            "--port",
            dest="port",
            type=int,
            default=443,
            help="the port used by admission-controller-server.",
        )
        parser.add_argument(
            "--mutate-webhook-config-name",
            dest="mutate_webhook_config_name",
            default="volcano-mutate-job",
            help="Name of the mutatingwebhookconfiguration resource in Kubernetes.",
        )
        parser.add_argument(
            "--mutate-webhook-name",
            dest="mutate_webhook_name",
            default="mutatejob.volcano.sh",
            help="Name of the webhook entry in the webhook config.",
        )
        parser.add_argument(
            "--validate-webhook-config-name",
            dest="validate_webhook_config_name",
            default="volcano-validate-job",
            help="Name of the validatingwebhookconfiguration resource in Kubernetes.",
        )
        parser.add_argument(
            "--validate-webhook-name",
            dest="validate_webhook_name",
            default="validatejob.volcano.sh",
            help="Name of the webhook entry in the webhook config.",
        )
        parser.add_argument(
            "--version",
            dest="print_version",
            nargs="?",
            const=True,
            default=False,
            type=_flag_bool,
            help="Show version and quit",
        )

    def apply(self, namespace: argparse.Namespace) -> None:
        """Take the parsed flag values."""
        for item in fields(self):
            if hasattr(namespace, item.name):
                setattr(self, item.name, getattr(namespace, item.name))

    def check_port(self) -> None:
        """Raise ValueError if the port is out of range."""
        if self.port < 1 or self.port > 65535:
            raise ValueError("the port should be in the range of 1 and 65535")


def _decoded_bundle(value: Any) -> bytes | None:
    if not value:
        return None
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError, TypeError):
        return None


def patch_webhook_config(
    config: dict[str, Any],
    webhook_config_name: str,
    webhook_name: str,
    ca_bundle: bytes,
) -> dict[str, Any]:
    """The strategic merge patch that sets a webhook entry's CA bundle.

    ``config`` is a mutating or validating webhook configuration in its JSON
    form; it is left unchanged. The result is empty when the entry already
    holds the bundle.
    """
    webhooks = config.get("webhooks") or []
    entry = next((w for w in webhooks if w.get("name") == webhook_name), None)
    if entry is None:
        raise WebhookNotFoundError(webhook_name, webhook_config_name)

    current = _decoded_bundle((entry.get("clientConfig") or {}).get("caBundle"))
    if current == bytes(ca_bundle) or (current is None and not ca_bundle):
        return {}

    encoded = base64.b64encode(bytes(ca_bundle)).decode("ascii")
    return {
        "$setElementOrder/webhooks": [{"name": w.get("name")} for w in webhooks],
        "webhooks": [{"clientConfig": {"caBundle": encoded}, "name": webhook_name}],
    }