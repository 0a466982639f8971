"""
Script to add sample data to the EduRecord platform via REST API.
Make sure the server is running before executing this script.

Usage:
    python add_data.py
"""

import requests
import json
import sys
import os


def _console_supports_utf8() -> bool:
    enc = getattr(sys.stdout, "encoding", None)
    return enc is not None and "utf" in enc.lower()


_OK_CHAR = "✓" if _console_supports_utf8() else "[OK]"
_FAIL_CHAR = "✗" if _console_supports_utf8() else "[FAIL]"
_WARN_CHAR = "⚠" if _console_supports_utf8() else "[WARN]"


def _detect_base_url() -> str:
    """Determine a reachable BASE_URL.

    Priority: environment variable `EDURECORD_BASE_URL`, then common local ports.
    If nothing responds, fall back to http://127.0.0.1:8000.
    """
    env = os.environ.get("EDURECORD_BASE_URL")
    if env:
        return env

    candidates = [
        "http://127.0.0.1:8000",
        "http://127.0.0.1:8888",
        "http://localhost:8000",
        "http://localhost:8888",
    ]

    for c in candidates:
        try:
            resp = requests.get(f"{c}/health", timeout=0.5)
            if resp.status_code == 200:
                return c
        except requests.exceptions.RequestException:
            continue

    return candidates[0]


BASE_URL = _detect_base_url()
HEADERS = {"X-User-Role": os.environ.get("EDURECORD_ROLE", "teacher")}


def check_server():
    """Check if the server is running."""
    try:
        response = requests.get(f"{BASE_URL}/health", timeout=2)
        if response.status_code == 200:
            print(f"{_OK_CHAR} Server is running")
            return True
    except requests.exceptions.RequestException:
        pass
    print(f"{_FAIL_CHAR} Server is not running!")
    print("\nPlease start the server first:")
    print("  python -m edurecord.main --rest-port 8000")
    return False


def _report(response, success, failure):
    """Print the outcome of a write and return the JSON body on success."""
    if response.status_code in (200, 201):
        print(f"{_OK_CHAR} {success}")
        return response.json()
    try:
        error = response.json()
        print(f"{_FAIL_CHAR} {failure}: [{error.get('error_code')}] {error.get('message')}")
    except ValueError:
        print(f"{_FAIL_CHAR} {failure}: {response.text}")
    return None


def register_course(course_id, max_students):
    """Register a course with its capacity."""
    response = requests.post(f"{BASE_URL}/courses", headers=HEADERS,
                             json={"course_id": course_id, "max_students": max_students})
    return _report(response, f"Registered course {course_id} ({max_students} seats)",
                   f"Failed to register course {course_id}")


def enroll_student(student_id, course_id):
    """Enroll a student in a course."""
    response = requests.post(f"{BASE_URL}/enrollments", headers=HEADERS,
                             json={"student_id": student_id, "course_id": course_id})
    return _report(response, f"Enrolled {student_id} in {course_id}",
                   f"Failed to enroll {student_id} in {course_id}")


def record_grade(enrollment, assignment_name, score, max_score=100, weight=1):
    """Record a grade for an enrollment."""
    data = {
        "assignment_name": assignment_name,
        "score": score,
        "max_score": max_score,
        "weight": weight
    }
    response = requests.post(f"{BASE_URL}/enrollments/{enrollment['enrollment_id']}/grades",
                             headers=HEADERS, json=data)
    return _report(response, f"Graded {enrollment['student_id']}: {assignment_name} {score}/{max_score}",
                   f"Failed to grade {enrollment['student_id']}")


def record_attendance(enrollment, attendance_date, status):
    """Record an attendance mark for an enrollment."""
    data = {"attendance_date": attendance_date, "status": status}
    response = requests.post(f"{BASE_URL}/enrollments/{enrollment['enrollment_id']}/attendance",
                             headers=HEADERS, json=data)
    return _report(response, f"Marked {enrollment['student_id']} {status} on {attendance_date}",
                   f"Failed to mark attendance for {enrollment['student_id']}")


def finalize(enrollment):
    """Finalize an enrollment."""
    response = requests.post(f"{BASE_URL}/enrollments/{enrollment['enrollment_id']}/finalize",
                             headers=HEADERS)
    result = _report(response, f"Finalized {enrollment['student_id']}",
                     f"Failed to finalize {enrollment['student_id']}")
    if result:
        print(f"    -> {result['status']} with final grade {result['final_grade']}")
    return result


def list_student_enrollments(student_id):
    """List a student's enrollments."""
    response = requests.get(f"{BASE_URL}/students/{student_id}/enrollments", headers=HEADERS)
    if response.status_code != 200:
        print(f"{_FAIL_CHAR} Failed to list enrollments: {response.text}")
        return []
    enrollments = response.json()
    print(f"\n{'='*60}")
    print(f"Enrollments for {student_id} ({len(enrollments)})")
    print(f"{'='*60}")
    for e in enrollments:
        print(f"  {e['course_id']:10} | {e['status']:10} | grade {e['weighted_percentage']} "
              f"| attendance {e['presence_percentage']}%")
    return enrollments


def get_course_statistics(course_id):
    """Get per-course statistics."""
    response = requests.get(f"{BASE_URL}/courses/{course_id}/statistics", headers=HEADERS)
    if response.status_code != 200:
        print(f"{_FAIL_CHAR} Failed to get statistics: {response.text}")
        return None
    stats = response.json()
    print(f"\n{'='*60}")
    print(f"Statistics for {course_id}")
    print(f"{'='*60}")
    print(json.dumps(stats, indent=2))
    return stats


def main():
    """Main execution."""
    print("="*60)
    print("EduRecord Platform - Data Addition Script")
    print("="*60)
    print()

    if not check_server():
        sys.exit(1)

    print("\nRegistering courses...")
    register_course("CS101", 30)
    register_course("MATH101", 2)

    print("\nEnrolling students...")
    alice = enroll_student("S001", "CS101")
    bob = enroll_student("S002", "CS101")
    enroll_student("S001", "MATH101")
    enroll_student("S003", "MATH101")
    if enroll_student("S004", "MATH101") is None:
        print(f"{_WARN_CHAR} MATH101 is full, as expected")

    if alice and bob:
        print("\nRecording grades...")
        record_grade(alice, "Midterm", 85)
        record_grade(alice, "Final exam", 95)
        record_grade(bob, "Midterm", 55)
        record_grade(bob, "Final exam", 60)

        print("\nRecording attendance...")
        for day, status in [("2024-09-02", "PRESENT"), ("2024-09-03", "PRESENT"),
                            ("2024-09-04", "ABSENT"), ("2024-09-05", "LATE")]:
            record_attendance(alice, day, status)

        print("\nFinalizing...")
        finalize(alice)
        finalize(bob)

    list_student_enrollments("S001")
    get_course_statistics("CS101")

    print("\n" + "="*60)
    print(f"{_OK_CHAR} Sample data added successfully!")
    print("="*60)
    print("\nYou can now:")
    print(f"  - View API docs: {BASE_URL}/docs")
    print(f"  - Course capacity: curl -H 'X-User-Role: student' {BASE_URL}/courses/CS101/capacity")
    print(f"  - Statistics: curl -H 'X-User-Role: student' {BASE_URL}/statistics")
    print()


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print(f"\n\n{_FAIL_CHAR} Interrupted by user")
        sys.exit(1)
    except requests.exceptions.RequestException as e:
        print(f"\n{_FAIL_CHAR} Request failed: {e}")
        sys.exit(1)
