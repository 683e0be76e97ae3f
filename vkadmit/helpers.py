"""Helpers for ownership of objects by jobs and commands."""

from __future__ import annotations

from typing import Any, Optional

from vkadmit.apis import (
    BATCH_GROUP_VERSION,
    BUS_GROUP_VERSION,
    GroupVersionKind,
    ObjectMeta,
    OwnerReference,
)

JOB_KIND = BATCH_GROUP_VERSION.with_kind("Job")
COMMAND_KIND = BUS_GROUP_VERSION.with_kind("Command")


def _metadata(obj: Any) -> Optional[ObjectMeta]:
    if isinstance(obj, ObjectMeta):
        return obj
    meta = getattr(obj, "metadata", None)
    if isinstance(meta, ObjectMeta):
        return meta
    if isinstance(obj, dict):
        meta = obj.get("metadata")
        if isinstance(meta, dict):
            return ObjectMeta.from_dict(meta)
    return None


def _controller_of(obj: Any) -> Optional[OwnerReference]:
    meta = _metadata(obj)
    if meta is None:
        return None
    return next((ref for ref in meta.owner_references if ref.controller), None)


def get_controller(obj: Any) -> str:
    """The uid of the object's controlling owner, or an empty string."""
    ref = _controller_of(obj)
    return ref.uid if ref is not None else ""


def controlled_by(obj: Any, gvk: GroupVersionKind) -> bool:
    """Whether the object's controlling owner is of the given kind."""
    ref = _controller_of(obj)
    return ref is not None and ref.kind == gvk.kind