"""Disclosure policy: which field groups a share link may expose.

A share link carries a :class:`SharePermissions` value, a fixed set over
:class:`FieldGroup`. Every check in the system goes through this module, so
adding a field group means adding one enum member (and, in the sharing
service, one view builder; a test keeps the two in step).

Nothing outside the permitted groups is ever read for an anonymous viewer:
the resolver fetches only the record sources the permitted groups need.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from pawpass.core.errors import ValidationError


class FieldGroup(str, Enum):
    """Named categories of disclosable data, in display order."""

    IDENTIFICATION = "identification"
    PHYSICAL = "physical"
    MEDICAL = "medical"
    VACCINATIONS = "vaccinations"
    EMERGENCY = "emergency"
    ALLERGIES = "allergies"
    NOTES = "notes"
    TIMELINE = "timeline"
    DOCUMENTS = "documents"

    @property
    def bit(self) -> int:
        return 1 << list(FieldGroup).index(self)


# Keys accepted from older clients, mapped onto the current groups.
_LEGACY_ALIASES = {"basic": FieldGroup.IDENTIFICATION}

_ALL_MASK = sum(group.bit for group in FieldGroup)


class SharePermissions:
    """Immutable set of field groups a share link discloses.

    Usage::

        perms = SharePermissions.from_flags({"identification": True, "allergies": True})
        perms.allows(FieldGroup.ALLERGIES)   # True
        perms.to_flags()                     # every group, True/False
        SharePermissions.all(), SharePermissions.none()
    """

    __slots__ = ("_groups",)

    def __init__(self, groups: Iterable[FieldGroup] = ()) -> None:
        self._groups = frozenset(FieldGroup(g) for g in groups)

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def all(cls) -> SharePermissions:
        return cls(FieldGroup)

    @classmethod
    def none(cls) -> SharePermissions:
        return cls()

    @classmethod
    def from_flags(cls, flags: Mapping[str, Any]) -> SharePermissions:
        """Build from a ``{group_name: bool}`` mapping.

        Missing groups are treated as ``False``.

        Raises:
            ValidationError: On unknown group names or non-boolean values.
        """
        if not isinstance(flags, Mapping):
            raise ValidationError("permissions", "must be an object of field-group flags")

        groups: set[FieldGroup] = set()
        for key, value in flags.items():
            group = _LEGACY_ALIASES.get(key)
            if group is None:
                try:
                    group = FieldGroup(key)
                except ValueError:
                    raise ValidationError(
                        f"permissions.{key}", "unknown field group"
                    ) from None
            if not isinstance(value, bool):
                raise ValidationError(f"permissions.{key}", "must be true or false")
            if value:
                groups.add(group)
        return cls(groups)

    @classmethod
    def from_mask(cls, mask: int) -> SharePermissions:
        if not isinstance(mask, int) or mask < 0 or mask & ~_ALL_MASK:
            raise ValidationError("permissions", f"invalid permission mask: {mask!r}")
        return cls(g for g in FieldGroup if mask & g.bit)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def allows(self, group: FieldGroup) -> bool:
        return group in self._groups

    @property
    def groups(self) -> list[FieldGroup]:
        """Permitted groups in display order."""
        return [g for g in FieldGroup if g in self._groups]

    def is_empty(self) -> bool:
        return not self._groups

    def to_flags(self) -> dict[str, bool]:
        """Fixed-shape mapping with an entry for every field group."""
        return {g.value: g in self._groups for g in FieldGroup}

    def to_mask(self) -> int:
        return sum(g.bit for g in self._groups)

    def __contains__(self, group: object) -> bool:
        return group in self._groups

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SharePermissions):
            return NotImplemented
        return self._groups == other._groups

    def __hash__(self) -> int:
        return hash(self._groups)

    def __repr__(self) -> str:
        return f"SharePermissions({[g.value for g in self.groups]})"


def filter_groups(
    permissions: SharePermissions, sections: Mapping[FieldGroup, Any]
) -> dict[str, Any]:
    """Keep only the sections whose field group is permitted.

    The result is keyed by group name, in display order.
    """
    return {
        group.value: sections[group]
        for group in permissions.groups
        if group in sections
    }
