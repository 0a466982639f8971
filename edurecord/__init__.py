"""
EduRecord: academic record engine for course enrollments.

Tracks how a student's enrollment in a course evolves, combines weighted
assignment scores into a grade and daily marks into an attendance figure, and
keeps courses within their capacity.
"""

__version__ = "1.0.0"
__author__ = "EduRecord Development Team"
__description__ = "Academic record engine for enrollments, grades and attendance"
