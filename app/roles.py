from __future__ import annotations

from typing import Dict, List, Set


ROLE_GROUPS: Dict[str, List[str]] = {
    "Administration": [
        "super_admin",
        "admin",
        "hagmar_admin",
    ],
    "Command": [
        "platoon_commander",
        "battalion_admin",
    ],
    "Drivers": [
        "driver",
    ],
}

ROLE_LABELS: Dict[str, str] = {
    "super_admin": "Super admin",
    "admin": "Admin",
    "hagmar_admin": "Hagmar admin",
    "platoon_commander": "Platoon commander",
    "battalion_admin": "Battalion admin",
    "driver": "Driver",
}

# Roles allowed to change the cleaning board. Everyone else reads only.
_EDITOR_ROLES: Set[str] = {"super_admin", "admin", "platoon_commander", "battalion_admin"}
# Roles allowed to delete checklist tasks.
_DELETE_ROLES: Set[str] = {"super_admin", "admin"}


def normalize_role(role: str) -> str:
    return (role or "").strip().lower().replace(" ", "_").replace("-", "_")


def is_known_role(role: str) -> bool:
    return normalize_role(role) in ROLE_LABELS


def can_edit(role: str) -> bool:
    """Return True if the role may change assignments and parade days."""
    return normalize_role(role) in _EDITOR_ROLES


def can_delete(role: str) -> bool:
    return normalize_role(role) in _DELETE_ROLES


def role_label(role: str) -> str:
    label = normalize_role(role)
    return ROLE_LABELS.get(label, role or "Unknown")


def defined_roles() -> List[str]:
    """Return a sorted list of roles explicitly supported by the app."""
    roles: List[str] = []
    for names in ROLE_GROUPS.values():
        roles.extend(names)
    return sorted(set(roles))
