"""Partial-update ("patch") support shared by the repositories."""
from dataclasses import fields
from typing import Any


class _Unset:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


# Marks a patch field that should be left alone; None means "set to NULL"
UNSET: Any = _Unset()


def patch_values(patch) -> dict[str, Any]:
    """Return {column: value} for every field the patch actually sets."""
    return {f.name: getattr(patch, f.name) for f in fields(patch) if getattr(patch, f.name) is not UNSET}


def apply_patch(row, patch) -> list[str]:
    """Copy set fields of ``patch`` onto ``row`` one by one. Returns the changed field names."""
    changed = []
    for name, value in patch_values(patch).items():
        setattr(row, name, value)
        changed.append(name)
    return changed
