"""
REST API implementation for the EduRecord platform using FastAPI.

The caller's role arrives in the ``X-User-Role`` header. Platform errors are
rendered as ``{"error_code", "message", "details"}`` with a status derived
from the exception kind.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from fastapi import Depends, FastAPI, Header, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..core.entities import AttendanceInput, CourseCapacity, EnrollmentAggregate, GradeInput
from ..core.enums import CourseStatus, EnrollmentStatus, RecordOperation, UserRole
from ..core.exceptions import (
    AcademicRecordError, AuthenticationError, AuthorizationError, ConcurrencyError,
    EduRecordException, InvalidGrade, ResourceNotFoundError, ValidationError
)
from ..core.capacity_guard import available_spots, can_enroll
from ..services import EnrollmentService
from .access_control import RoleAccessControl, parse_role

logger = logging.getLogger(__name__)


# Pydantic models for API
class CourseCreate(BaseModel):
    course_id: str = Field(..., min_length=1, max_length=255)
    max_students: int = Field(30, ge=1, le=100)
    status: str = Field("ACTIVE", pattern=r'(?i)^(active|inactive|completed)$')


class CourseCapacityResponse(BaseModel):
    course_id: str
    max_students: int
    active_enrollment_count: int
    available_spots: int
    can_enroll: bool
    status: str


class CourseStatisticsResponse(BaseModel):
    course_id: str
    status_counts: Dict[str, int]
    average_final_grade: Optional[Decimal] = None
    available_spots: int


class EnrollmentCreate(BaseModel):
    student_id: str = Field(..., min_length=1, max_length=255)
    course_id: str = Field(..., min_length=1, max_length=255)
    enrollment_date: Optional[date] = None


class GradeCreate(BaseModel):
    assignment_name: str = Field(..., min_length=1, max_length=255)
    score: Decimal
    max_score: Decimal = Decimal("100")
    weight: Decimal = Decimal("1")
    grade_date: Optional[date] = None
    comments: Optional[str] = None

    def to_input(self) -> GradeInput:
        return GradeInput(
            assignment_name=self.assignment_name,
            score=self.score,
            max_score=self.max_score,
            weight=self.weight,
            grade_date=self.grade_date,
            comments=self.comments
        )


class AttendanceCreate(BaseModel):
    attendance_date: date
    status: str = Field(..., min_length=1)
    comments: Optional[str] = None


class FinalizeRequest(BaseModel):
    passing_threshold: Optional[Decimal] = None


class GradeResponse(BaseModel):
    grade_id: str
    assignment_name: str
    score: Decimal
    max_score: Decimal
    weight: Decimal
    percentage: Decimal
    letter_grade: str
    grade_date: date
    comments: Optional[str] = None


class AttendanceResponse(BaseModel):
    mark_id: str
    attendance_date: date
    status: str
    comments: Optional[str] = None


class EnrollmentSummaryResponse(BaseModel):
    enrollment_id: str
    student_id: str
    course_id: str
    enrollment_date: date
    status: str
    weighted_percentage: Optional[Decimal] = None
    letter_grade: Optional[str] = None
    presence_percentage: Decimal
    final_grade: Optional[Decimal] = None
    grade_count: int
    attendance_count: int
    attendance_breakdown: Dict[str, int]


class EnrollmentDetailResponse(EnrollmentSummaryResponse):
    grades: List[GradeResponse] = []
    attendance: List[AttendanceResponse] = []


class StatisticsResponse(BaseModel):
    success: bool
    message: str
    statistics: Dict[str, Any]


def error_status(error: EduRecordException) -> int:
    """HTTP status for a platform exception."""
    if isinstance(error, (InvalidGrade, ValidationError)):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(error, AcademicRecordError):
        return status.HTTP_409_CONFLICT
    if isinstance(error, ResourceNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, AuthenticationError):
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(error, AuthorizationError):
        return status.HTTP_403_FORBIDDEN
    if isinstance(error, ConcurrencyError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def caller_role(x_user_role: Optional[str] = Header(None)) -> UserRole:
    return parse_role(x_user_role)


class EduRecordRestAPI:
    """REST API implementation for EduRecord platform."""

    def __init__(self, enrollment_service: EnrollmentService,
                 access_control: Optional[RoleAccessControl] = None):
        self._enrollment_service = enrollment_service
        self._access_control = access_control or RoleAccessControl()

        # Create FastAPI app
        self.app = FastAPI(
            title="EduRecord Academic Record API",
            description="Enrollments, grades and attendance for course records",
            version="1.0.0",
            docs_url="/docs",
            redoc_url="/redoc"
        )

        # Add CORS middleware
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        self._setup_error_handlers()
        self._setup_routes()

    def _setup_error_handlers(self):
        @self.app.exception_handler(EduRecordException)
        async def handle_platform_error(request: Request, exc: EduRecordException):
            status_code = error_status(exc)
            if status_code >= 500:
                logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
            return JSONResponse(status_code=status_code,
                                content=jsonable_encoder(exc.to_dict(), custom_encoder={Decimal: str}))

        @self.app.exception_handler(RequestValidationError)
        async def handle_request_validation(request: Request, exc: RequestValidationError):
            error = ValidationError("Invalid request", details={'errors': _plain_errors(exc.errors())})
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error.to_dict())

        @self.app.exception_handler(Exception)
        async def handle_unexpected(request: Request, exc: Exception):
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            error = EduRecordException("Internal error", error_code="INTERNAL_ERROR")
            return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=error.to_dict())

    def _setup_routes(self):
        """Setup API routes."""
        service = self._enrollment_service
        require = self._access_control.require

        @self.app.get("/", response_model=Dict[str, str])
        def root():
            """Root endpoint."""
            return {
                "message": "EduRecord Academic Record API",
                "version": "1.0.0",
                "docs": "/docs"
            }

        @self.app.get("/health", response_model=Dict[str, str])
        def health_check():
            """Health check endpoint."""
            return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

        # Courses

        @self.app.post("/courses", response_model=CourseCapacityResponse, status_code=status.HTTP_201_CREATED)
        def register_course(course_data: CourseCreate, role: UserRole = Depends(caller_role)):
            """Register or update a course's capacity."""
            require(role, RecordOperation.REGISTER_COURSE)
            course = service.register_course(
                course_data.course_id,
                course_data.max_students,
                CourseStatus.from_string(course_data.status)
            )
            return self._capacity_to_response(course)

        @self.app.get("/courses/{course_id}/capacity", response_model=CourseCapacityResponse)
        def get_course_capacity(course_id: str, role: UserRole = Depends(caller_role)):
            require(role, RecordOperation.READ)
            return self._capacity_to_response(service.get_course_capacity(course_id))

        @self.app.get("/courses/{course_id}/statistics", response_model=CourseStatisticsResponse)
        def get_course_statistics(course_id: str, role: UserRole = Depends(caller_role)):
            require(role, RecordOperation.READ)
            return service.get_course_statistics(course_id).to_dict()

        @self.app.get("/courses/{course_id}/enrollments", response_model=List[EnrollmentSummaryResponse])
        def get_course_enrollments(course_id: str,
                                   status_name: Optional[str] = Query(None, alias="status"),
                                   role: UserRole = Depends(caller_role)):
            """Course roster, optionally filtered by status."""
            require(role, RecordOperation.READ)
            status_filter = EnrollmentStatus.from_string(status_name) if status_name else None
            return [summary.to_dict() for summary in service.get_course_enrollments(course_id, status_filter)]

        # Enrollments

        @self.app.post("/enrollments", response_model=EnrollmentDetailResponse,
                       status_code=status.HTTP_201_CREATED)
        def enroll_student(enrollment_data: EnrollmentCreate, role: UserRole = Depends(caller_role)):
            """Enroll a student in a course."""
            require(role, RecordOperation.ENROLL)
            aggregate = service.enroll_student(
                enrollment_data.student_id,
                enrollment_data.course_id,
                enrollment_data.enrollment_date
            )
            return self._aggregate_to_response(aggregate)

        @self.app.get("/enrollments/{enrollment_id}", response_model=EnrollmentDetailResponse)
        def get_enrollment(enrollment_id: str, role: UserRole = Depends(caller_role)):
            """Enrollment summary with its grades and attendance."""
            require(role, RecordOperation.READ)
            return self._aggregate_to_response(service.get_aggregate(enrollment_id))

        @self.app.get("/students/{student_id}/enrollments", response_model=List[EnrollmentSummaryResponse])
        def get_student_enrollments(student_id: str,
                                    status_name: Optional[str] = Query(None, alias="status"),
                                    role: UserRole = Depends(caller_role)):
            """Get student enrollments, optionally filtered by status."""
            require(role, RecordOperation.READ)
            status_filter = EnrollmentStatus.from_string(status_name) if status_name else None
            return [summary.to_dict() for summary in service.get_student_enrollments(student_id, status_filter)]

        @self.app.post("/enrollments/{enrollment_id}/grades", response_model=EnrollmentDetailResponse,
                       status_code=status.HTTP_201_CREATED)
        def record_grade(enrollment_id: str, grade_data: GradeCreate, role: UserRole = Depends(caller_role)):
            require(role, RecordOperation.RECORD_GRADE)
            return self._aggregate_to_response(service.record_grade(enrollment_id, grade_data.to_input()))

        @self.app.put("/enrollments/{enrollment_id}/grades/{grade_id}", response_model=EnrollmentDetailResponse)
        def replace_grade(enrollment_id: str, grade_id: str, grade_data: GradeCreate,
                          role: UserRole = Depends(caller_role)):
            """Replace a grade with a corrected one."""
            require(role, RecordOperation.REPLACE_GRADE)
            aggregate = service.replace_grade(enrollment_id, grade_id, grade_data.to_input())
            return self._aggregate_to_response(aggregate)

        @self.app.post("/enrollments/{enrollment_id}/attendance", response_model=EnrollmentDetailResponse,
                       status_code=status.HTTP_201_CREATED)
        def record_attendance(enrollment_id: str, attendance_data: AttendanceCreate,
                              role: UserRole = Depends(caller_role)):
            require(role, RecordOperation.RECORD_ATTENDANCE)
            attendance_input = AttendanceInput(
                attendance_date=attendance_data.attendance_date,
                status=attendance_data.status,
                comments=attendance_data.comments
            )
            return self._aggregate_to_response(service.record_attendance(enrollment_id, attendance_input))

        @self.app.post("/enrollments/{enrollment_id}/finalize", response_model=EnrollmentDetailResponse)
        def finalize(enrollment_id: str, finalize_data: Optional[FinalizeRequest] = None,
                     role: UserRole = Depends(caller_role)):
            """Close the enrollment as COMPLETED or FAILED."""
            require(role, RecordOperation.FINALIZE)
            threshold = finalize_data.passing_threshold if finalize_data else None
            return self._aggregate_to_response(service.finalize(enrollment_id, threshold))

        @self.app.post("/enrollments/{enrollment_id}/withdraw", response_model=EnrollmentDetailResponse)
        def withdraw(enrollment_id: str, role: UserRole = Depends(caller_role)):
            require(role, RecordOperation.WITHDRAW)
            return self._aggregate_to_response(service.withdraw(enrollment_id))

        @self.app.post("/enrollments/{enrollment_id}/fail", response_model=EnrollmentDetailResponse)
        def force_fail(enrollment_id: str, role: UserRole = Depends(caller_role)):
            require(role, RecordOperation.FORCE_FAIL)
            return self._aggregate_to_response(service.force_fail(enrollment_id))

        @self.app.delete("/enrollments/{enrollment_id}", status_code=status.HTTP_204_NO_CONTENT)
        def delete_enrollment(enrollment_id: str, role: UserRole = Depends(caller_role)):
            require(role, RecordOperation.DELETE_ENROLLMENT)
            service.delete_enrollment(enrollment_id)

        @self.app.get("/statistics", response_model=StatisticsResponse)
        def get_statistics(role: UserRole = Depends(caller_role)):
            """Get service statistics."""
            require(role, RecordOperation.READ)
            return StatisticsResponse(
                success=True,
                message="Statistics retrieved successfully",
                statistics=service.get_statistics()
            )

    def _aggregate_to_response(self, aggregate: EnrollmentAggregate) -> Dict[str, Any]:
        """Convert an aggregate to the detail response payload."""
        response = self._enrollment_service.engine.summarize(aggregate).to_dict()
        response['grades'] = [grade.to_dict() for grade in aggregate.grades]
        response['attendance'] = [mark.to_dict() for mark in aggregate.attendance]
        return response

    @staticmethod
    def _capacity_to_response(course: CourseCapacity) -> CourseCapacityResponse:
        return CourseCapacityResponse(
            course_id=course.course_id,
            max_students=course.max_students,
            active_enrollment_count=course.active_enrollment_count,
            available_spots=available_spots(course),
            can_enroll=can_enroll(course),
            status=course.status.value
        )


def _plain_errors(errors) -> List[Dict[str, Any]]:
    return [
        {'loc': [str(part) for part in error.get('loc', ())], 'msg': error.get('msg', '')}
        for error in errors
    ]
