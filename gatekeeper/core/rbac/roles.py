"""Default role definitions for Gatekeeper.

Defines the 6 seeded system roles with their permission sets:
1. super_admin - Every permission in the default catalog
2. admin - Management access, no role/permission authoring
3. instructor - Course authoring and grading
4. student - Enroll in and take courses
5. user - Regular user who can view and enroll, plus library access
6. guest - Limited read access

System roles cannot be renamed or deleted, but their permission sets can be
synced like any other role.
"""

from typing import Dict, List

from .permissions import get_all_permissions

SUPER_ADMIN_ROLE = "super_admin"
ADMIN_ROLE = "admin"


SUPER_ADMIN_PERMISSIONS = get_all_permissions()

ADMIN_PERMISSIONS = [
    "user.create", "user.read", "user.update", "user.delete",
    "course.create", "course.read", "course.update", "course.delete", "course.publish",
    "lesson.create", "lesson.read", "lesson.update", "lesson.delete",
    "quiz.create", "quiz.read", "quiz.update", "quiz.delete", "quiz.grade",
    "assignment.create", "assignment.read", "assignment.update", "assignment.delete",
    "assignment.grade",
    "category.create", "category.read", "category.update", "category.delete",
    "role.read", "permission.read",
    "payment.view", "payment.refund",
    "analytics.view",
]

INSTRUCTOR_PERMISSIONS = [
    "course.create", "course.read", "course.update", "course.publish",
    "lesson.create", "lesson.read", "lesson.update", "lesson.delete",
    "quiz.create", "quiz.read", "quiz.update", "quiz.delete", "quiz.grade",
    "assignment.create", "assignment.read", "assignment.update", "assignment.delete",
    "assignment.grade",
    "category.read",
    "analytics.view",
]

STUDENT_PERMISSIONS = [
    "course.read", "course.enroll",
    "lesson.read",
    "quiz.read", "quiz.attempt",
    "assignment.read", "assignment.submit",
    "category.read",
    "payment.process",
]

USER_PERMISSIONS = [
    "course.read", "course.enroll",
    "lesson.read",
    "quiz.read", "quiz.attempt",
    "assignment.read", "assignment.submit",
    "category.read",
    "library.read",
]

GUEST_PERMISSIONS = [
    "course.read",
    "category.read",
]


DEFAULT_ROLES: Dict[str, dict] = {
    SUPER_ADMIN_ROLE: {
        "description": "Super Administrator with full system access",
        "permissions": SUPER_ADMIN_PERMISSIONS,
    },
    ADMIN_ROLE: {
        "description": "Administrator with management access",
        "permissions": ADMIN_PERMISSIONS,
    },
    "instructor": {
        "description": "Course instructor who can create and manage courses",
        "permissions": INSTRUCTOR_PERMISSIONS,
    },
    "student": {
        "description": "Student who can enroll in and take courses",
        "permissions": STUDENT_PERMISSIONS,
    },
    "user": {
        "description": "Regular user who can view and enroll in courses",
        "permissions": USER_PERMISSIONS,
    },
    "guest": {
        "description": "Guest user with limited read access",
        "permissions": GUEST_PERMISSIONS,
    },
}


def get_default_role_permissions(role_name: str) -> List[str]:
    """Get permissions list for a default role."""
    role = DEFAULT_ROLES.get(role_name)
    if not role:
        raise ValueError(f"Unknown default role: {role_name}")
    return list(role["permissions"])


def get_all_default_roles() -> Dict[str, dict]:
    """Get all default role definitions."""
    return DEFAULT_ROLES.copy()
