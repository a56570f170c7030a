"""Permission naming and default catalog for Gatekeeper.

Permission string format: "resource.action"
Examples:
  - course.create
  - user.manage_roles
  - role.update

The default catalog is a matrix: resource -> {action: description}. It is
what ``seed_default_permissions`` writes; the stored ``permissions`` table is
the source of truth at runtime and may hold more.
"""

import re
from typing import Dict, NamedTuple, List

# lowercase words, digits and underscores on both sides of a single dot
PERMISSION_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*\.[a-z][a-z0-9_]*$")


class PermissionName(NamedTuple):
    """A permission name split into its resource and action."""
    resource: str
    action: str

    def __str__(self) -> str:
        return f"{self.resource}.{self.action}"

    @classmethod
    def from_string(cls, name: str) -> "PermissionName":
        """Parse a permission name like 'course.create'."""
        if not isinstance(name, str) or not PERMISSION_NAME_PATTERN.match(name):
            raise ValueError(f"Invalid permission format: {name!r} (expected '<resource>.<action>')")
        resource, action = name.split(".")
        return cls(resource, action)


def is_valid_permission_name(name: str) -> bool:
    """Check if a string follows the '<resource>.<action>' convention."""
    return isinstance(name, str) and bool(PERMISSION_NAME_PATTERN.match(name))


PERMISSION_MATRIX: Dict[str, Dict[str, str]] = {
    "user": {
        "create": "Create new users",
        "read": "View user information",
        "update": "Update user information",
        "delete": "Delete users",
        "manage_roles": "Assign roles and permission overrides to users",
    },
    "course": {
        "create": "Create new courses",
        "read": "View courses",
        "update": "Update courses",
        "delete": "Delete courses",
        "publish": "Publish/unpublish courses",
        "enroll": "Enroll in courses",
    },
    "lesson": {
        "create": "Create lessons",
        "read": "View lessons",
        "update": "Update lessons",
        "delete": "Delete lessons",
    },
    "quiz": {
        "create": "Create quizzes",
        "read": "View quizzes",
        "update": "Update quizzes",
        "delete": "Delete quizzes",
        "attempt": "Take quizzes",
        "grade": "Grade quiz attempts",
    },
    "assignment": {
        "create": "Create assignments",
        "read": "View assignments",
        "update": "Update assignments",
        "delete": "Delete assignments",
        "submit": "Submit assignments",
        "grade": "Grade assignments",
    },
    "category": {
        "create": "Create categories",
        "read": "View categories",
        "update": "Update categories",
        "delete": "Delete categories",
    },
    "role": {
        "create": "Create roles",
        "read": "View roles",
        "update": "Update roles and their permission sets",
        "delete": "Delete roles",
    },
    "permission": {
        "create": "Create permissions",
        "read": "View permissions",
        "update": "Update permission descriptions",
        "delete": "Delete permissions",
    },
    "payment": {
        "process": "Process payments",
        "refund": "Refund payments",
        "view": "View payment transactions",
    },
    "analytics": {
        "view": "View analytics and reports",
    },
    "library": {
        "read": "Access the library",
    },
}


def _generate_permission_definitions() -> Dict[str, PermissionName]:
    """Generate all default permission names from the matrix."""
    permissions = {}
    for resource, actions in PERMISSION_MATRIX.items():
        for action in actions:
            perm = PermissionName(resource, action)
            permissions[str(perm)] = perm
    return permissions


# All default permissions: "resource.action" -> PermissionName
PERMISSION_DEFINITIONS = _generate_permission_definitions()


def get_permission_description(name: str) -> str:
    """Description of a default permission, or '' if not in the catalog."""
    perm = PERMISSION_DEFINITIONS.get(name)
    if perm is None:
        return ""
    return PERMISSION_MATRIX[perm.resource][perm.action]


def get_permissions_for_resource(resource: str) -> List[str]:
    """Get all default permission names for a resource."""
    return [
        str(PermissionName(resource, action))
        for action in PERMISSION_MATRIX.get(resource, {})
    ]


def get_all_permissions() -> List[str]:
    """Get all default permission names."""
    return list(PERMISSION_DEFINITIONS.keys())
