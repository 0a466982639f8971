import pytest
from fastapi.testclient import TestClient

from edurecord.api.rest_api import EduRecordRestAPI
from edurecord.persistence.database import SQLiteDatabase
from edurecord.persistence.repositories import CourseRepository, EnrollmentRepository
from edurecord.services import AcademicRecordEngine, ConcurrencyManager, EnrollmentService


@pytest.fixture(name="database")
def database_fixture(tmp_path):
    """Fresh SQLite file per test"""
    return SQLiteDatabase(database_path=str(tmp_path / "edurecord_test.db"))


@pytest.fixture(name="course_repository")
def course_repository_fixture(database):
    return CourseRepository(database)


@pytest.fixture(name="enrollment_repository")
def enrollment_repository_fixture(database, course_repository):
    return EnrollmentRepository(database, course_repository)


@pytest.fixture(name="engine")
def engine_fixture():
    return AcademicRecordEngine()


@pytest.fixture(name="service")
def service_fixture(course_repository, enrollment_repository, engine):
    return EnrollmentService(
        course_repository,
        enrollment_repository,
        engine,
        ConcurrencyManager(lock_timeout=2.0),
        lock_retries=2
    )


@pytest.fixture(name="client")
def client_fixture(service):
    return TestClient(EduRecordRestAPI(service).app)

