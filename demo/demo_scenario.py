#!/usr/bin/env python3
"""
Demo scenario for the EduRecord platform.
"""

import sys
import os
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta

# Add the project root to the Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from edurecord.config import load_config
from edurecord.core.entities import AttendanceInput, GradeInput
from edurecord.core.exceptions import AcademicRecordError
from edurecord.main import EduRecordPlatform


def run_demo():
    """Run a comprehensive demo of the EduRecord platform."""
    print("=" * 60)
    print("EDURECORD ACADEMIC RECORD PLATFORM - DEMO")
    print("=" * 60)

    config = load_config()
    config['database_config'] = {'database_path': 'demo_edurecord.db'}
    if os.path.exists('demo_edurecord.db'):
        os.remove('demo_edurecord.db')

    platform = EduRecordPlatform(config)
    service = platform.enrollment_service

    try:
        print("\n1. Registering courses...")
        register_courses(service)

        print("\n2. Demonstrating the enrollment lifecycle...")
        enrollments = demonstrate_lifecycle(service)

        print("\n3. Demonstrating rule enforcement...")
        demonstrate_rules(service, enrollments)

        print("\n4. Demonstrating concurrency control...")
        demonstrate_concurrency(service)

        print("\n5. Platform statistics...")
        show_statistics(service)

        print("\n" + "=" * 60)
        print("DEMO COMPLETED SUCCESSFULLY!")
        print("=" * 60)

    except Exception as e:
        print(f"\nDemo failed with error: {e}")
        import traceback
        traceback.print_exc()


def register_courses(service):
    """Register the demo courses."""
    for course_id, seats in [("CS101", 30), ("MATH101", 25), ("SEM401", 5)]:
        course = service.register_course(course_id, max_students=seats)
        print(f"  ✓ {course.course_id}: {course.max_students} seats")


def demonstrate_lifecycle(service):
    """Enroll, grade, mark attendance and finalize."""
    alice = service.enroll_student("S001", "CS101")
    bob = service.enroll_student("S002", "CS101")
    carol = service.enroll_student("S003", "MATH101")
    print(f"  ✓ Enrolled S001, S002 in CS101 and S003 in MATH101")

    service.record_grade(alice.enrollment_id, GradeInput("Midterm", 85))
    service.record_grade(alice.enrollment_id, GradeInput("Final exam", 95))
    service.record_grade(bob.enrollment_id, GradeInput("Midterm", 70, weight=2))
    service.record_grade(bob.enrollment_id, GradeInput("Project", 40, max_score=50))

    start = date.today() - timedelta(days=5)
    for offset, status in enumerate(["PRESENT", "PRESENT", "ABSENT", "LATE", "EXCUSED"]):
        service.record_attendance(alice.enrollment_id,
                                  AttendanceInput(start + timedelta(days=offset), status))

    for enrollment in (alice, bob):
        summary = service.get_summary(enrollment.enrollment_id)
        print(f"  {summary.student_id}: {summary.weighted_percentage}% "
              f"({summary.letter_grade.value}), attendance {summary.presence_percentage}%")

    service.finalize(alice.enrollment_id)
    service.withdraw(carol.enrollment_id)
    for enrollment in (alice, carol):
        summary = service.get_summary(enrollment.enrollment_id)
        print(f"  ✓ {summary.student_id} is now {summary.status.value} (final grade {summary.final_grade})")

    return {'alice': alice, 'bob': bob, 'carol': carol}


def demonstrate_rules(service, enrollments):
    """Show the typed errors returned for rejected commands."""
    attempts = [
        ("Duplicate enrollment", lambda: service.enroll_student("S002", "CS101")),
        ("Grade after withdrawal",
         lambda: service.record_grade(enrollments['carol'].enrollment_id, GradeInput("Quiz", 10))),
        ("Finalize twice", lambda: service.finalize(enrollments['alice'].enrollment_id)),
        ("Score above maximum",
         lambda: service.record_grade(enrollments['bob'].enrollment_id, GradeInput("Quiz", 120))),
    ]
    for label, attempt in attempts:
        try:
            attempt()
            print(f"  ✗ {label}: unexpectedly accepted")
        except AcademicRecordError as e:
            print(f"  ✓ {label}: [{e.error_code}] {e.message}")

    carol = service.enroll_student("S003", "MATH101")
    print(f"  ✓ S003 re-enrolled in MATH101 after withdrawing ({carol.enrollment_id})")


def demonstrate_concurrency(service):
    """Race twenty students for five seats."""
    print("  Racing 20 enrollments for 5 seats in SEM401...")

    def attempt(index):
        try:
            service.enroll_student(f"R{index:03d}", "SEM401")
            return True
        except AcademicRecordError:
            return False

    start_time = time.time()
    with ThreadPoolExecutor(max_workers=8) as executor:
        results = list(executor.map(attempt, range(20)))

    capacity = service.get_course_capacity("SEM401")
    print(f"    Accepted: {results.count(True)}")
    print(f"    Refused: {results.count(False)}")
    print(f"    Active enrollments: {capacity.active_enrollment_count}/{capacity.max_students}")
    print(f"    Total time: {time.time() - start_time:.2f}s")


def show_statistics(service):
    """Show platform statistics."""
    for course_id in ("CS101", "MATH101", "SEM401"):
        stats = service.get_course_statistics(course_id).to_dict()
        print(f"    {course_id}: {stats['status_counts']}, "
              f"average final grade {stats['average_final_grade']}, "
              f"{stats['available_spots']} spots left")

    service_stats = service.get_statistics()
    print(f"    Committed commands: {service_stats['committed']}")
    print(f"    Rejected commands: {service_stats['rejected']}")
    print(f"    Locks: {service_stats['concurrency']}")


if __name__ == "__main__":
    run_demo()
