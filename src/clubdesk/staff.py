"""
Staff REST API — departments and employee records.
"""

from typing import Any, Optional

from clubdesk.errors import BackendError, ValidationError
from clubdesk.models.events import Table
from clubdesk.models.staff import Department, EmploymentStatus, StaffMember
from clubdesk.transport.http import HttpClient, eq

STAFF_COLUMNS = (
    "id,employee_id,first_name,last_name,email,phone,department,position,"
    "employment_status,hire_date,payment_type,created_at,updated_at"
)


def _first(rows: list[dict[str, Any]], what: str) -> dict[str, Any]:
    if not rows:
        raise BackendError(f"{what} not found", code="not_found")
    return rows[0]


class StaffAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    # Departments

    async def departments(self, with_headcount: bool = False) -> list[Department]:
        """Active departments ordered by name, optionally with active staff counts."""
        rows = await self._http.select(Table.STAFF_DEPARTMENTS, filters={"is_active": eq(True)}, order="name.asc")
        departments = [Department.model_validate(r) for r in rows]
        if with_headcount:
            for dept in departments:
                dept.staff_count = await self.headcount(dept.name)
        return departments

    async def headcount(self, department: str) -> int:
        return await self._http.count(Table.EMPLOYEES, {
            "department": eq(department),
            "employment_status": eq(EmploymentStatus.ACTIVE.value),
        })

    async def create_department(self, name: str, description: str = "", budget_allocation: float = 0,
                                created_by: Optional[str] = None) -> Department:
        name = name.strip()
        if not name:
            raise ValidationError("Department name is required", field="name")
        rows = await self._http.insert(Table.STAFF_DEPARTMENTS, {
            "name": name,
            "description": description.strip() or None,
            "budget_allocation": budget_allocation,
            "created_by": created_by,
        })
        return Department.model_validate(_first(rows, "Department"))

    async def update_department(self, department_id: str, **values: Any) -> Department:
        rows = await self._http.update(Table.STAFF_DEPARTMENTS, values, {"id": eq(department_id)})
        return Department.model_validate(_first(rows, "Department"))

    async def deactivate_department(self, department_id: str) -> Department:
        """Soft delete: the row stays, flagged inactive."""
        return await self.update_department(department_id, is_active=False)

    # Staff members

    async def members(self, department: Optional[str] = None) -> list[StaffMember]:
        filters = {"employment_status": eq(EmploymentStatus.ACTIVE.value)}
        if department:
            filters["department"] = eq(department)
        rows = await self._http.select(Table.EMPLOYEES, STAFF_COLUMNS, filters, order="first_name.asc")
        return [StaffMember.model_validate(r) for r in rows]

    async def create_member(self, first_name: str, last_name: str, **values: Any) -> StaffMember:
        if not first_name.strip() or not last_name.strip():
            raise ValidationError("First and last name are required", field="name")
        row = {"first_name": first_name.strip(), "last_name": last_name.strip(), **values}
        rows = await self._http.insert(Table.EMPLOYEES, row)
        return StaffMember.model_validate(_first(rows, "Staff member"))

    async def update_member(self, member_id: str, **values: Any) -> StaffMember:
        if "employment_status" in values:
            values["employment_status"] = EmploymentStatus(values["employment_status"]).value
        rows = await self._http.update(Table.EMPLOYEES, values, {"id": eq(member_id)})
        return StaffMember.model_validate(_first(rows, "Staff member"))
