"""School CRUD. Creating, updating and deleting schools is superadmin-only."""

import logging

from school_admin.managers.base import EntityManager, as_number, utc_now
from school_admin.schemas.inputs import CreateSchoolInput, validate_input

logger = logging.getLogger(__name__)

SCHOOL_FIELDS = [
    "_id", "name", "address", "email", "phone", "principal_name", "capacity",
    "created_at", "updated_at",
]


class SchoolManager(EntityManager):
    label = "school"
    http_exposed = [
        "post=create_school",
        "get=list_schools",
        "get=get_school",
        "put=update_school",
        "delete=delete_school",
    ]

    async def create_school(
        self,
        __long_token=None,
        __is_super_admin=None,
        name=None,
        address=None,
        email=None,
        phone=None,
        principal_name=None,
        capacity=None,
    ):
        if not name or not address or not email:
            return {"error": "missing required fields"}

        errors = validate_input(CreateSchoolInput, {"name": name, "address": address, "email": email})
        if errors:
            return {"errors": errors}

        if await self._exists("school", {"name": name}):
            return {"error": "school name already exists"}

        now = utc_now()
        school = await self.store.add_block({
            "_label": "school",
            "name": name,
            "address": address,
            "email": email,
            "phone": phone or None,
            "principal_name": principal_name or None,
            "capacity": as_number(capacity),
            "created_at": now,
            "updated_at": now,
        })
        logger.info("School created: %s (%s)", school["_id"], name)
        return {"school": school}

    async def list_schools(self, __long_token=None, page=None, limit=None, search=None):
        query = {"name": search} if search else {}
        found = await self._list("school", query, SCHOOL_FIELDS, page, limit)
        return {
            "schools": found["items"],
            "total": found["total"],
            "page": found["page"],
            "limit": found["limit"],
        }

    async def get_school(self, __long_token=None, school_id=None):
        if not school_id:
            return {"error": "school_id is required"}
        school = await self._get(school_id)
        if not school:
            return {"error": "school not found"}
        return school

    async def update_school(
        self,
        __long_token=None,
        __is_super_admin=None,
        school_id=None,
        name=None,
        address=None,
        email=None,
        phone=None,
        principal_name=None,
        capacity=None,
    ):
        if not school_id:
            return {"error": "school_id is required"}
        existing = await self._get(school_id)
        if not existing:
            return {"error": "school not found"}
        if capacity is not None and as_number(capacity) is None:
            return {"error": "capacity must be a number"}

        update = self._changes({
            "name": name,
            "address": address,
            "email": email,
            "phone": phone,
            "principal_name": principal_name,
            "capacity": as_number(capacity),
        })
        update["updated_at"] = utc_now()

        updated = await self.store.update_block({"_id": self._key(school_id), **update})
        return updated or {**existing, **update}

    async def delete_school(self, __long_token=None, __is_super_admin=None, school_id=None):
        if not school_id:
            return {"error": "school_id is required"}
        if not await self._get(school_id):
            return {"error": "school not found"}

        await self.store.delete_block(self._key(school_id))
        logger.info("School deleted: %s", school_id)
        return {"message": "school deleted"}
