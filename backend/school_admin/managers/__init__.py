"""
School Admin Backend — Entity Managers
========================================

Dispatch targets for /api/{module_name}/{fn_name}. load_managers() builds
the module table handed to the ApiHandler:

    school     SchoolManager
    classroom  ClassroomManager
    student    StudentManager
    user       UserManager
"""

from typing import Any, Dict

from school_admin.managers.classroom import ClassroomManager
from school_admin.managers.school import SchoolManager
from school_admin.managers.student import StudentManager
from school_admin.managers.user import UserManager
from school_admin.services.passwords import PasswordHasher
from school_admin.services.store import DocumentStore
from school_admin.services.tokens import TokenService


def load_managers(store: DocumentStore, tokens: TokenService, hasher: PasswordHasher) -> Dict[str, Any]:
    return {
        "school": SchoolManager(store),
        "classroom": ClassroomManager(store),
        "student": StudentManager(store),
        "user": UserManager(store, tokens, hasher),
    }
