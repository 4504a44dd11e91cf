"""
Core module containing the entity model, enumerations and collaborator interfaces.
"""

from .entities import *
from .interfaces import *
from .exceptions import *
from .enums import *

__all__ = [
    # Entities
    "AbstractEntity",
    "Course",
    "Student",
    "Enrollment",
    "Lecture",
    "FeedbackEntry",
    "Assessment",
    "Grade",
    "parse_timestamp",
    "utc_now",

    # Interfaces
    "RemoteSource",
    "RemoteMirror",
    "RemoteService",
    "Notifier",

    # Enums
    "EntityType",
    "CourseStatus",
    "LectureStatus",
    "UnderstandingLevel",
    "AssessmentType",
    "PublicationStatus",
    "StudentStatus",
    "FeedbackCategory",
    "ChangeKind",
    "StudentFilter",
    "StudentSort",
    "CourseFilter",
    "CourseSort",
    "FeedbackFilter",
    "FeedbackSort",
    "LectureFilter",
    "LectureSort",

    # Exceptions
    "CoursePulseException",
    "ValidationError",
    "ResourceNotFoundError",
    "DuplicateEntityError",
    "InvalidReferenceError",
    "RemoteSyncError",
    "ConfigurationError",
]
