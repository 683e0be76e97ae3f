"""Command-line options of the job controller manager."""

from __future__ import annotations

import argparse
from dataclasses import dataclass, fields

DEFAULT_QPS = 50.0
DEFAULT_BURST = 100

_TRUE_WORDS = {"1", "t", "T", "true", "TRUE", "True"}
_FALSE_WORDS = {"0", "f", "F", "false", "FALSE", "False"}


def _flag_bool(text: str) -> bool:
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


@dataclass
class ServerOption:
    """Settings of the controller manager."""

    master: str = ""
    kubeconfig: str = ""
    enable_leader_election: bool = False
    lock_object_namespace: str = ""
    kube_api_burst: int = 0
    kube_api_qps: float = 0.0
    print_version: bool = False

    def add_flags(self, parser: argparse.ArgumentParser) -> None:
        """Register the manager's flags on the parser."""
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
            "--leader-elect",
            dest="enable_leader_election",
            nargs="?",
            const=True,
            default=self.enable_leader_election,
            type=_flag_bool,
            help="Start a leader election client and gain leadership before executing "
            "the main loop. Enable this when running replicated instances for high availability.",
        )
        parser.add_argument(
            "--lock-object-namespace",
            dest="lock_object_namespace",
            default=self.lock_object_namespace,
            help="Define the namespace of the lock object.",
        )
        parser.add_argument(
            "--kube-api-qps",
            dest="kube_api_qps",
            type=float,
            default=DEFAULT_QPS,
            help="QPS to use while talking with kubernetes apiserver",
        )
        parser.add_argument(
            "--kube-api-burst",
            dest="kube_api_burst",
            type=int,
            default=DEFAULT_BURST,
            help="Burst to use while talking with kubernetes apiserver",
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

    def check_option(self) -> None:
        """Raise ValueError if the options do not fit together."""
        if self.enable_leader_election and not self.lock_object_namespace:
            raise ValueError(
                "lock-object-namespace must not be nil when LeaderElection is enabled"
            )