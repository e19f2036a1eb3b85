"""
Classroom CRUD, scoped to a school.

School admins manage classrooms of their own school only; listing by a
school admin is always narrowed to that school, whatever ``school_id`` the
client sends.
"""

import logging

from school_admin.managers.base import EntityManager, as_number, utc_now

logger = logging.getLogger(__name__)

CLASSROOM_FIELDS = [
    "_id", "name", "school_id", "capacity", "grade", "resources", "created_at", "updated_at",
]
CLASSROOM_STUDENT_FIELDS = ["_id", "name", "email", "grade", "school_id", "classroom_id", "created_at"]


class ClassroomManager(EntityManager):
    label = "classroom"
    http_exposed = [
        "post=create_classroom",
        "get=list_classrooms",
        "get=get_classroom",
        "put=update_classroom",
        "delete=delete_classroom",
        "get=get_classroom_students",
    ]

    async def create_classroom(
        self,
        __long_token=None,
        __is_school_admin=None,
        name=None,
        school_id=None,
        capacity=None,
        grade=None,
        resources=None,
    ):
        if not name or not school_id:
            return {"error": "missing required fields"}
        if not self._can_access(__long_token, school_id):
            return {"error": "forbidden: cannot access school"}
        if not await self._get(school_id, "school"):
            return {"error": "school not found"}
        if await self._exists("classroom", {"name": name, "school_id": school_id}):
            return {"error": "classroom name already exists in school"}

        now = utc_now()
        classroom = await self.store.add_block({
            "_label": "classroom",
            "_hosts": [f"school:{school_id}"],
            "name": name,
            "school_id": school_id,
            "capacity": as_number(capacity),
            "grade": grade or None,
            "resources": resources if isinstance(resources, list) else [],
            "created_at": now,
            "updated_at": now,
        })
        logger.info("Classroom created: %s in school %s", classroom["_id"], school_id)
        return {"classroom": classroom}

    async def list_classrooms(self, __long_token=None, page=None, limit=None, school_id=None):
        if __long_token and __long_token.get("role") == "schooladmin":
            school_id = __long_token.get("school_id")

        query = {"school_id": school_id} if school_id else {}
        found = await self._list("classroom", query, CLASSROOM_FIELDS, page, limit)
        return {
            "classrooms": found["items"],
            "total": found["total"],
            "page": found["page"],
            "limit": found["limit"],
        }

    async def get_classroom(self, __long_token=None, classroom_id=None):
        if not classroom_id:
            return {"error": "classroom_id is required"}
        classroom = await self._get(classroom_id)
        if not classroom:
            return {"error": "classroom not found"}
        if not self._can_access(__long_token, classroom.get("school_id")):
            return {"error": "forbidden: cannot access classroom"}
        return classroom

    async def update_classroom(
        self,
        __long_token=None,
        __is_school_admin=None,
        classroom_id=None,
        name=None,
        capacity=None,
        grade=None,
        resources=None,
    ):
        if not classroom_id:
            return {"error": "classroom_id is required"}
        existing = await self._get(classroom_id)
        if not existing:
            return {"error": "classroom not found"}
        if not self._can_access(__long_token, existing.get("school_id")):
            return {"error": "forbidden: cannot access classroom"}

        if capacity is not None and as_number(capacity) is None:
            return {"error": "capacity must be a number"}
        if resources is not None and not isinstance(resources, list):
            return {"error": "resources must be a list"}

        update = self._changes({
            "name": name,
            "capacity": as_number(capacity),
            "grade": grade,
            "resources": resources,
        })
        update["updated_at"] = utc_now()

        updated = await self.store.update_block({"_id": self._key(classroom_id), **update})
        return updated or {**existing, **update}

    async def delete_classroom(self, __long_token=None, __is_school_admin=None, classroom_id=None):
        if not classroom_id:
            return {"error": "classroom_id is required"}
        existing = await self._get(classroom_id)
        if not existing:
            return {"error": "classroom not found"}
        if not self._can_access(__long_token, existing.get("school_id")):
            return {"error": "forbidden: cannot access classroom"}

        await self.store.delete_block(self._key(classroom_id))
        logger.info("Classroom deleted: %s", classroom_id)
        return {"message": "classroom deleted"}

    async def get_classroom_students(self, __long_token=None, classroom_id=None, page=None, limit=None):
        if not classroom_id:
            return {"error": "classroom_id is required"}
        classroom = await self._get(classroom_id)
        if not classroom:
            return {"error": "classroom not found"}
        if not self._can_access(__long_token, classroom.get("school_id")):
            return {"error": "forbidden: cannot access classroom"}

        found = await self._list(
            "student", {"classroom_id": classroom_id}, CLASSROOM_STUDENT_FIELDS, page, limit
        )
        return {
            "students": found["items"],
            "total": found["total"],
            "classroom": {"id": classroom["_id"], "name": classroom.get("name")},
        }
