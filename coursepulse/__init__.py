"""
CoursePulse: course health and student engagement dashboard backend.

Tracks courses, students, lectures, feedback and grades for professors, derives
per-student and per-course health metrics, and serves searchable, pageable
lists with bulk actions over a REST API. Data is loaded from an optional remote
backend, with a bundled demo dataset as fallback, and local changes are
mirrored back in the background.
"""

__version__ = "1.0.0"
__author__ = "CoursePulse Development Team"
__description__ = "Course health and student engagement dashboard backend"
