"""Shared builders for the test suite.

Every store built here sits on its own in-memory SQLite medium.
"""

from class2class.core.database import create_session_factory
from class2class.utils.entity_store import EntityStore
from class2class.utils.program_manager import ProgramManager
from class2class.utils.storage import KeyValueStorage


def make_storage() -> KeyValueStorage:
    return KeyValueStorage(create_session_factory("sqlite://"))


def make_store(strict_references: bool = False) -> EntityStore:
    return EntityStore(make_storage(), strict_references=strict_references)


def add_partner(store, name="Save the Children Denmark", country="DK"):
    return store.create_record(
        "partners", {"organization_name": name, "country": country}
    )


def add_program(store, partner, name="Program A", status="active"):
    return ProgramManager(store).create_program(
        partner.id, {"name": name, "status": status}, created_by="user-1"
    )


def add_institution(store, program, name="Nordic School", country="DK", students=100, **extra):
    return store.create_record(
        "institutions",
        {
            "program_id": program.id,
            "name": name,
            "country": country,
            "student_count": students,
            "status": "active",
            **extra,
        },
    )


def add_teacher(store, institution, first_name="Anna", last_name="Jensen", **extra):
    return store.create_record(
        "institution_teachers",
        {
            "institution_id": institution.id,
            "program_id": institution.program_id,
            "first_name": first_name,
            "last_name": last_name,
            "email": f"{first_name.lower()}@school.example",
            **extra,
        },
    )


def add_project(store, program, teacher, status="active", **extra):
    return store.create_record(
        "program_projects",
        {
            "program_id": program.id,
            "created_by_id": teacher.id,
            "created_by_type": "teacher",
            "status": status,
            **extra,
        },
    )
