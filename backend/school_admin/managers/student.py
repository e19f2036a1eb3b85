"""
Student CRUD, transfers and transfer history.

A student is hosted by its school and, when assigned, its classroom. A
transfer moves both hosts and appends a record to ``transfer_history``.
"""

import logging

from school_admin.managers.base import EntityManager, as_number, utc_now

logger = logging.getLogger(__name__)

STUDENT_LIST_FIELDS = [
    "_id", "name", "email", "phone", "grade", "school_id", "classroom_id", "created_at",
]


def _hosts(school_id, classroom_id=None):
    hosts = [f"school:{school_id}"]
    if classroom_id:
        hosts.append(f"classroom:{classroom_id}")
    return hosts


class StudentManager(EntityManager):
    label = "student"
    http_exposed = [
        "post=create_student",
        "get=list_students",
        "get=get_student",
        "put=update_student",
        "delete=delete_student",
        "post=transfer_student",
        "get=get_student_history",
    ]

    async def _count_in_classroom(self, classroom_id: str) -> int:
        found = await self.store.search_find(
            label="student", query={"classroom_id": classroom_id}, fields=["_id"], limit=1, offset=0
        )
        return found.get("total", 0)

    async def create_student(
        self,
        __long_token=None,
        __is_school_admin=None,
        name=None,
        email=None,
        phone=None,
        date_of_birth=None,
        grade=None,
        address=None,
        school_id=None,
        classroom_id=None,
    ):
        if not name or not email or not school_id:
            return {"error": "missing required fields"}
        if not self._can_access(__long_token, school_id):
            return {"error": "forbidden: cannot access school"}
        if not await self._get(school_id, "school"):
            return {"error": "school not found"}

        if classroom_id:
            classroom = await self._get(classroom_id, "classroom")
            if not classroom:
                return {"error": "classroom not found"}
            if classroom.get("school_id") != school_id:
                return {"error": "classroom does not belong to school"}
            capacity = as_number(classroom.get("capacity"))
            if capacity and capacity > 0 and await self._count_in_classroom(classroom_id) >= capacity:
                return {"error": "classroom at full capacity"}

        if await self._exists("student", {"email": email}):
            return {"error": "student email already exists"}

        now = utc_now()
        student = await self.store.add_block({
            "_label": "student",
            "_hosts": _hosts(school_id, classroom_id),
            "name": name,
            "email": email,
            "phone": phone or None,
            "date_of_birth": date_of_birth or None,
            "grade": grade or None,
            "address": address or None,
            "school_id": school_id,
            "classroom_id": classroom_id or None,
            "enrolled_at": now,
            "transfer_history": [],
            "created_at": now,
            "updated_at": now,
        })
        logger.info("Student created: %s in school %s", student["_id"], school_id)
        return {"student": student}

    async def list_students(
        self, __long_token=None, page=None, limit=None, school_id=None, classroom_id=None, grade=None
    ):
        if __long_token and __long_token.get("role") == "schooladmin":
            school_id = __long_token.get("school_id")

        query = {
            name: value
            for name, value in (("school_id", school_id), ("classroom_id", classroom_id), ("grade", grade))
            if value
        }
        found = await self._list("student", query, STUDENT_LIST_FIELDS, page, limit)
        return {
            "students": found["items"],
            "total": found["total"],
            "page": found["page"],
            "limit": found["limit"],
        }

    async def get_student(self, __long_token=None, student_id=None):
        if not student_id:
            return {"error": "student_id is required"}
        student = await self._get(student_id)
        if not student:
            return {"error": "student not found"}
        if not self._can_access(__long_token, student.get("school_id")):
            return {"error": "forbidden: cannot access student"}
        return student

    async def update_student(
        self,
        __long_token=None,
        __is_school_admin=None,
        student_id=None,
        name=None,
        email=None,
        phone=None,
        date_of_birth=None,
        grade=None,
        address=None,
        classroom_id=None,
    ):
        if not student_id:
            return {"error": "student_id is required"}
        existing = await self._get(student_id)
        if not existing:
            return {"error": "student not found"}
        if not self._can_access(__long_token, existing.get("school_id")):
            return {"error": "forbidden: cannot access student"}

        update = self._changes({
            "name": name,
            "email": email,
            "phone": phone,
            "date_of_birth": date_of_birth,
            "grade": grade,
            "address": address,
        })

        if classroom_id is not None:
            # an empty string unassigns the classroom
            if classroom_id:
                classroom = await self._get(classroom_id, "classroom")
                if not classroom:
                    return {"error": "classroom not found"}
                if classroom.get("school_id") != existing.get("school_id"):
                    return {"error": "classroom does not belong to student school"}
            update["classroom_id"] = classroom_id or None
            update["_hosts"] = _hosts(existing.get("school_id"), classroom_id)

        update["updated_at"] = utc_now()
        updated = await self.store.update_block({"_id": self._key(student_id), **update})
        update.pop("_hosts", None)
        return updated or {**existing, **update}

    async def delete_student(self, __long_token=None, __is_school_admin=None, student_id=None):
        if not student_id:
            return {"error": "student_id is required"}
        existing = await self._get(student_id)
        if not existing:
            return {"error": "student not found"}
        if not self._can_access(__long_token, existing.get("school_id")):
            return {"error": "forbidden: cannot access student"}

        await self.store.delete_block(self._key(student_id))
        logger.info("Student deleted: %s", student_id)
        return {"message": "student deleted"}

    async def transfer_student(
        self,
        __long_token=None,
        __is_school_admin=None,
        student_id=None,
        to_school_id=None,
        to_classroom_id=None,
        reason=None,
    ):
        if not student_id or not to_school_id:
            return {"error": "missing required fields"}
        student = await self._get(student_id)
        if not student:
            return {"error": "student not found"}
        if not self._can_access(__long_token, student.get("school_id")):
            return {"error": "forbidden: cannot transfer from this school"}
        if not await self._get(to_school_id, "school"):
            return {"error": "destination school not found"}

        if to_classroom_id:
            to_classroom = await self._get(to_classroom_id, "classroom")
            if not to_classroom:
                return {"error": "destination classroom not found"}
            if to_classroom.get("school_id") != to_school_id:
                return {"error": "destination classroom does not belong to destination school"}

        now = utc_now()
        record = {
            "from_school_id": student.get("school_id"),
            "from_classroom_id": student.get("classroom_id") or None,
            "to_school_id": to_school_id,
            "to_classroom_id": to_classroom_id or None,
            "reason": reason or None,
            "transferred_at": now,
            "transferred_by": (__long_token or {}).get("user_id"),
        }
        history = list(student.get("transfer_history") or [])
        history.append(record)

        update = {
            "school_id": to_school_id,
            "classroom_id": to_classroom_id or None,
            "transfer_history": history,
            "updated_at": now,
        }
        updated = await self.store.update_block({
            "_id": self._key(student_id),
            "_hosts": _hosts(to_school_id, to_classroom_id),
            **update,
        })
        logger.info(
            "Student %s transferred from school %s to %s",
            student_id, record["from_school_id"], to_school_id,
        )
        return {
            "student": updated or {**student, **update},
            "transfer": record,
            "message": "student transferred",
        }

    async def get_student_history(self, __long_token=None, student_id=None):
        if not student_id:
            return {"error": "student_id is required"}
        student = await self._get(student_id)
        if not student:
            return {"error": "student not found"}
        if not self._can_access(__long_token, student.get("school_id")):
            return {"error": "forbidden: cannot access student"}

        return {
            "student": {
                "id": student["_id"],
                "name": student.get("name"),
                "current_school_id": student.get("school_id"),
            },
            "history": list(student.get("transfer_history") or []),
        }
