"""
Main entry point for the EduRecord platform.
"""

import argparse
import threading
import time
from datetime import date, timedelta
from typing import Optional

from .api.rest_api import EduRecordRestAPI
from .config import load_config, validate_config, DEFAULT_CONFIG
from .core.entities import AttendanceInput, GradeInput
from .core.exceptions import AcademicRecordError
from .log_config import setup_logging
from .persistence import DatabaseFactory
from .persistence.repositories import CourseRepository, EnrollmentRepository
from .services import AcademicRecordEngine, ConcurrencyManager, EnrollmentService


class EduRecordPlatform:
    """Main platform class that wires storage, services and the REST API."""

    def __init__(self, config: Optional[dict] = None):
        self._config = config if config is not None else validate_config(dict(DEFAULT_CONFIG))
        self._database = None
        self._concurrency_manager = None
        self._enrollment_service = None
        self._rest_api = None
        self._rest_thread = None
        self._running = False

        self._initialize_platform()

    @property
    def enrollment_service(self) -> EnrollmentService:
        return self._enrollment_service

    @property
    def rest_api(self) -> EduRecordRestAPI:
        return self._rest_api

    def _initialize_platform(self):
        """Initialize the platform with all services."""
        print("Initializing EduRecord platform...")

        db_type = self._config['database_type']
        db_config = self._config['database_config']
        self._database = DatabaseFactory.create_database(db_type, **db_config)
        print(f"✓ Database initialized: {db_type}")

        self._concurrency_manager = ConcurrencyManager(lock_timeout=self._config['lock_timeout'])
        print("✓ Concurrency manager initialized")

        course_repository = CourseRepository(self._database)
        enrollment_repository = EnrollmentRepository(self._database, course_repository)
        print("✓ Repositories initialized")

        engine = AcademicRecordEngine(self._config['passing_threshold'])
        self._enrollment_service = EnrollmentService(
            course_repository,
            enrollment_repository,
            engine,
            self._concurrency_manager,
            lock_retries=self._config['lock_retries']
        )
        print(f"✓ Services initialized (passing threshold {engine.passing_threshold})")

        self._rest_api = EduRecordRestAPI(self._enrollment_service)
        print("✓ APIs initialized")

        print("✓ EduRecord platform initialized successfully!")

    def start_rest_server(self, host: str = "0.0.0.0", port: int = 8000):
        """Start the REST server."""
        import uvicorn

        def run_server():
            uvicorn.run(
                self._rest_api.app,
                host=host,
                port=port,
                log_level=self._config['log_level'].lower()
            )

        # Start server in a separate thread
        self._rest_thread = threading.Thread(target=run_server, daemon=True)
        self._rest_thread.start()

        print(f"✓ REST server started on {host}:{port}")

    def start_platform(self, host: str = "0.0.0.0", rest_port: int = 8000):
        """Start the entire platform."""
        if self._running:
            print("Platform already running")
            return

        print("Starting EduRecord platform...")
        self.start_rest_server(host, rest_port)

        self._running = True
        print("✓ EduRecord platform started successfully!")
        print(f"  - REST API: http://localhost:{rest_port}")
        print(f"  - API Docs: http://localhost:{rest_port}/docs")

    def stop_platform(self):
        """Stop the platform."""
        if not self._running:
            print("Platform not running")
            return

        print("Stopping EduRecord platform...")
        self._running = False
        print(f"✓ Lock statistics: {self._concurrency_manager.get_statistics()}")
        print("✓ EduRecord platform stopped")

    def run_demo(self):
        """Run a demonstration of the platform."""
        print("Running EduRecord platform demonstration...")
        service = self._enrollment_service

        course = service.register_course("CS101", max_students=2)
        print(f"✓ Course {course.course_id} registered with {course.max_students} seats")

        alice = service.enroll_student("S001", course.course_id)
        bob = service.enroll_student("S002", course.course_id)
        print(f"✓ Enrolled S001 ({alice.enrollment_id}) and S002 ({bob.enrollment_id})")

        try:
            service.enroll_student("S003", course.course_id)
        except AcademicRecordError as e:
            print(f"✓ Third enrollment refused: [{e.error_code}] {e.message}")

        service.record_grade(alice.enrollment_id, GradeInput("Midterm", 85, weight=1))
        service.record_grade(alice.enrollment_id, GradeInput("Final exam", 95, weight=1))
        service.record_grade(bob.enrollment_id, GradeInput("Midterm", 50, weight=1))

        start = date.today() - timedelta(days=4)
        for offset, mark in enumerate(["PRESENT", "PRESENT", "ABSENT", "LATE"]):
            service.record_attendance(alice.enrollment_id, AttendanceInput(start + timedelta(days=offset), mark))

        for enrollment_id in (alice.enrollment_id, bob.enrollment_id):
            service.finalize(enrollment_id)
            summary = service.get_summary(enrollment_id)
            print(f"  {summary.student_id}: {summary.status.value}, final grade {summary.final_grade}, "
                  f"attendance {summary.presence_percentage}%")

        print("\n=== Course Statistics ===")
        print(service.get_course_statistics(course.course_id).to_dict())
        print("\n=== Service Statistics ===")
        print(service.get_statistics())

        print("\n✓ Demo completed")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="EduRecord Academic Record Platform")
    parser.add_argument("--config", type=str, help="Configuration file path")
    parser.add_argument("--host", type=str, help="REST server host")
    parser.add_argument("--rest-port", type=int, help="REST server port")
    parser.add_argument("--log-level", type=str, help="Logging level")
    parser.add_argument("--demo", action="store_true", help="Run demo mode")

    args = parser.parse_args()

    config = load_config(args.config)
    if args.host:
        config['rest_host'] = args.host
    if args.rest_port:
        config['rest_port'] = args.rest_port
    if args.log_level:
        config['log_level'] = args.log_level
    config = validate_config(config)

    setup_logging(config['log_level'])
    platform = EduRecordPlatform(config)

    try:
        if args.demo:
            platform.run_demo()
        else:
            platform.start_platform(config['rest_host'], config['rest_port'])

            # Keep running
            print("\nPlatform is running. Press Ctrl+C to stop.")
            while True:
                time.sleep(1)

    except KeyboardInterrupt:
        print("\nShutting down...")
        platform.stop_platform()


if __name__ == "__main__":
    main()
