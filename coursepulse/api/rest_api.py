"""
REST API implementation for the CoursePulse platform using FastAPI.
"""

import threading
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from ..core.entities import Assessment, Course, FeedbackEntry, Grade, Lecture, Student
from ..core.enums import EntityType
from ..core.exceptions import CoursePulseException
from ..core.interfaces import Notifier
from ..persistence.entity_store import EntityStore
from ..services.enrollment_service import EnrollmentService
from ..services.gradebook_service import GradebookService
from ..services.list_session import ListSession
from ..services.query_engine import QueryEngine, QueryRequest
from ..services.selection_coordinator import SelectionCoordinator
from ..services.sync_service import SyncService

QUERYABLE = {
    "courses": EntityType.COURSE,
    "students": EntityType.STUDENT,
    "feedback": EntityType.FEEDBACK,
    "lectures": EntityType.LECTURE,
}

ERROR_STATUS = {
    "NotFound": status.HTTP_404_NOT_FOUND,
    "DuplicateKey": status.HTTP_409_CONFLICT,
    "InvalidReference": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "ValidationError": status.HTTP_422_UNPROCESSABLE_ENTITY,
}


# Pydantic models for API
class CourseCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=200)
    department: str = Field("", max_length=100)
    semester: str = Field("", max_length=40)
    professor_id: str = Field(..., min_length=1)
    credits: int = Field(3, ge=0, le=10)
    description: str = Field("", max_length=1000)
    enrollment_code: Optional[str] = Field(None, pattern=r'^[A-Za-z0-9]{6}$')


class CourseUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=20)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    department: Optional[str] = None
    semester: Optional[str] = None
    credits: Optional[int] = Field(None, ge=0, le=10)
    description: Optional[str] = None
    status: Optional[str] = Field(None, pattern=r'^(active|archived)$')


class CourseResponse(BaseModel):
    id: str
    code: str
    name: str
    department: str
    semester: str
    professor_id: str
    credits: int
    description: str
    enrollment_code: str
    status: str
    created_at: datetime
    updated_at: datetime
    version: int


class StudentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
    roll_number: str = Field("", max_length=40)
    department: str = Field("General", max_length=100)


class StudentResponse(BaseModel):
    id: str
    name: str
    email: str
    roll_number: str
    department: str
    last_active_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    version: int


class EnrollRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3)
    roll_number: str = Field("", max_length=40)


class BulkEnrollRequest(BaseModel):
    text: str


class EnrollByCodeRequest(BaseModel):
    student_id: str = Field(..., min_length=1)
    enrollment_code: str = Field(..., min_length=1)


class EnrollmentResponse(BaseModel):
    student_id: str
    course_id: str
    enrollment_id: Optional[str] = None
    student_created: bool = False
    already_enrolled: bool = False


class EnrollmentReportResponse(BaseModel):
    enrolled: int
    already_enrolled: int
    students_created: int
    skipped: int
    student_ids: List[str] = []
    errors: List[Dict[str, Any]] = []


class LectureCreate(BaseModel):
    course_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    date: datetime
    topics: List[str] = []
    duration_minutes: int = Field(60, ge=1, le=600)


class LectureResponse(BaseModel):
    id: str
    course_id: str
    title: str
    date: datetime
    status: str
    topics: List[str] = []
    attendee_ids: List[str] = []
    duration_minutes: int
    created_at: datetime
    version: int


class AttendanceRequest(BaseModel):
    student_id: str = Field(..., min_length=1)


class FeedbackCreate(BaseModel):
    lecture_id: str = Field(..., min_length=1)
    student_id: str = Field(..., min_length=1)
    understanding_level: str
    difficult_topics: List[str] = []
    reason: str = Field("", max_length=2000)


class FeedbackResponse(BaseModel):
    id: str
    lecture_id: str
    student_id: str
    course_id: str
    understanding_level: str
    difficult_topics: List[str] = []
    reason: str
    created_at: datetime


class AssessmentCreate(BaseModel):
    course_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    assessment_type: str
    max_marks: float = Field(..., gt=0)
    weight_pct: float = Field(0, ge=0, le=100)
    due_date: Optional[datetime] = None


class AssessmentResponse(BaseModel):
    id: str
    course_id: str
    name: str
    assessment_type: str
    max_marks: float
    weight_pct: float
    due_date: Optional[datetime] = None
    status: str
    created_at: datetime
    version: int


class GradeEntryModel(BaseModel):
    student_id: str = Field(..., min_length=1)
    marks: Optional[float] = None
    comments: Optional[str] = None


class BulkGradesRequest(BaseModel):
    grades: List[GradeEntryModel] = Field(..., min_length=1)


class GradeResponse(BaseModel):
    id: str
    assessment_id: str
    student_id: str
    course_id: str
    marks_obtained: Optional[float] = None
    comments: str
    graded_at: Optional[datetime] = None


class SelectionRequest(BaseModel):
    ids: List[str] = []
    search: str = ""
    filter: str = "all"
    sort: Optional[str] = None
    page: int = Field(1, ge=1)
    page_size: Optional[int] = Field(None, ge=1, le=500)
    professor_id: Optional[str] = None
    message: str = ""


class QueryResponse(BaseModel):
    items: List[Dict[str, Any]]
    has_more: bool
    total_filtered_count: int
    page: int
    stats: Dict[str, Any] = {}
    filter_counts: Dict[str, int] = {}


class BulkResponse(BaseModel):
    success: bool
    message: str
    ids: List[str] = []


class ExportResponse(BaseModel):
    headers: List[str]
    rows: List[List[Any]]


class CoursePulseRestAPI:
    """REST API implementation for the CoursePulse platform."""

    def __init__(self, store: EntityStore, query_engine: QueryEngine,
                 enrollment_service: EnrollmentService, gradebook_service: GradebookService,
                 sync_service: Optional[SyncService] = None, notifier: Optional[Notifier] = None,
                 page_size: int = 20):
        self._store = store
        self._query_engine = query_engine
        self._enrollment_service = enrollment_service
        self._gradebook_service = gradebook_service
        self._sync_service = sync_service
        self._notifier = notifier
        self._page_size = page_size

        self._lock = threading.RLock()

        # Create FastAPI app
        self.app = FastAPI(
            title="CoursePulse API",
            description="Course health, student engagement and feedback dashboard",
            version="1.0.0",
            docs_url="/docs",
            redoc_url="/redoc"
        )

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        self._setup_routes()

    @staticmethod
    def _http_error(error: Exception) -> HTTPException:
        if isinstance(error, CoursePulseException):
            code = ERROR_STATUS.get(error.error_code, status.HTTP_400_BAD_REQUEST)
            return HTTPException(status_code=code, detail={
                "error": error.error_code,
                "message": error.message,
                "details": error.details,
            })
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))

    def _collection(self, name: str) -> EntityType:
        try:
            return QUERYABLE[name]
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown collection: {name}")

    def _mirror_upsert(self, entity_type: EntityType, records: list) -> None:
        if self._sync_service is not None:
            self._sync_service.mirror_upsert(entity_type, records)

    def _mirror_delete(self, entity_type: EntityType, ids: List[str]) -> None:
        if self._sync_service is not None:
            self._sync_service.mirror_delete(entity_type, ids)

    def _coordinator(self, entity_type: EntityType, selection: SelectionRequest) -> SelectionCoordinator:
        """Rebuild the list the caller is looking at and select the given ids on it."""
        session = ListSession(
            self._query_engine, entity_type,
            page_size=selection.page_size or self._page_size,
            professor_id=selection.professor_id,
        )
        session.set_search(selection.search)
        session.set_filter(selection.filter)
        if selection.sort:
            session.set_sort(selection.sort)
        while session.page < selection.page and session.result().has_more:
            session.load_more()
        coordinator = SelectionCoordinator(
            session, self._store, sync=self._sync_service, notifier=self._notifier,
            clock=self._query_engine.clock,
        )
        for entity_id in selection.ids:
            if not coordinator.is_selected(entity_id):
                coordinator.toggle(entity_id)
        return coordinator

    def _query(self, entity_type: EntityType, search: str, filter_by: str, sort: Optional[str],
               page: int, page_size: Optional[int], professor_id: Optional[str],
               course_id: Optional[str]) -> QueryResponse:
        try:
            request = QueryRequest(
                search=search, filter=filter_by, sort=sort, page=page,
                page_size=page_size or self._page_size,
                professor_id=professor_id, course_id=course_id,
            )
            with self._lock:
                result = self._query_engine.query(entity_type, request)
                stats = self._query_engine.stats(entity_type, request)
                counts = self._query_engine.filter_counts(entity_type, request)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        return QueryResponse(
            items=[row.to_dict() for row in result.items],
            has_more=result.has_more,
            total_filtered_count=result.total_filtered_count,
            page=result.page,
            stats=stats,
            filter_counts=counts,
        )

    def _setup_routes(self):
        """Setup API routes."""

        @self.app.get("/", response_model=Dict[str, str])
        async def root():
            """Root endpoint."""
            return {
                "message": "CoursePulse API",
                "version": "1.0.0",
                "docs": "/docs"
            }

        @self.app.get("/health", response_model=Dict[str, Any])
        async def health_check():
            """Health check endpoint."""
            sync_stats = self._sync_service.statistics.to_dict() if self._sync_service else {}
            return {
                "status": "healthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "revision": self._store.revision,
                "sync": sync_stats,
            }

        # List queries
        @self.app.get("/{collection}", response_model=QueryResponse)
        async def query_collection(collection: str, search: str = "",
                                   filter_by: str = Query("all", alias="filter"),
                                   sort: Optional[str] = None, page: int = Query(1, ge=1),
                                   page_size: Optional[int] = Query(None, ge=1, le=500),
                                   professor_id: Optional[str] = None,
                                   course_id: Optional[str] = None):
            """Search, filter, sort and page a collection."""
            entity_type = self._collection(collection)
            return self._query(entity_type, search, filter_by, sort, page, page_size,
                               professor_id, course_id)

        # Course endpoints
        @self.app.post("/courses", response_model=CourseResponse, status_code=status.HTTP_201_CREATED)
        async def create_course(course_data: CourseCreate):
            """Create a new course."""
            try:
                with self._lock:
                    course = self._store.create_course(**course_data.model_dump())
            except CoursePulseException as e:
                raise self._http_error(e)
            self._mirror_upsert(EntityType.COURSE, [course])
            return self._course_to_response(course)

        @self.app.get("/courses/{course_id}", response_model=CourseResponse)
        async def get_course(course_id: str):
            """Get a course by ID."""
            try:
                return self._course_to_response(self._store.get_course(course_id))
            except CoursePulseException as e:
                raise self._http_error(e)

        @self.app.patch("/courses/{course_id}", response_model=CourseResponse)
        async def update_course(course_id: str, changes: CourseUpdate):
            """Apply a partial update to a course."""
            try:
                with self._lock:
                    course = self._store.update_course(course_id, **changes.model_dump(exclude_unset=True))
            except CoursePulseException as e:
                raise self._http_error(e)
            self._mirror_upsert(EntityType.COURSE, [course])
            return self._course_to_response(course)

        @self.app.delete("/courses/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
        async def delete_course(course_id: str):
            """Delete a course and everything attached to it."""
            try:
                with self._lock:
                    self._store.delete_course(course_id)
            except CoursePulseException as e:
                raise self._http_error(e)
            self._mirror_delete(EntityType.COURSE, [course_id])

        @self.app.get("/courses/{course_id}/students", response_model=List[StudentResponse])
        async def get_course_students(course_id: str):
            """Students enrolled in a course."""
            try:
                self._store.get_course(course_id)
            except CoursePulseException as e:
                raise self._http_error(e)
            return [self._student_to_response(s) for s in self._store.get_course_students(course_id)]

        @self.app.get("/courses/{course_id}/assessments", response_model=List[AssessmentResponse])
        async def get_course_assessments(course_id: str):
            """Assessments of a course."""
            try:
                self._store.get_course(course_id)
            except CoursePulseException as e:
                raise self._http_error(e)
            return [self._assessment_to_response(a) for a in self._store.get_course_assessments(course_id)]

        @self.app.get("/courses/{course_id}/gradebook", response_model=Dict[str, Dict[str, Any]])
        async def get_course_gradebook(course_id: str):
            """Grade statistics for every assessment of a course."""
            try:
                summary = self._gradebook_service.course_gradebook(course_id)
            except CoursePulseException as e:
                raise self._http_error(e)
            return {assessment_id: asdict(stats) for assessment_id, stats in summary.items()}

        # Enrollment endpoints
        @self.app.post("/courses/{course_id}/enrollments", response_model=EnrollmentResponse,
                       status_code=status.HTTP_201_CREATED)
        async def enroll_student(course_id: str, enrollment_data: EnrollRequest):
            """Enroll a student by email, registering them when unknown."""
            try:
                with self._lock:
                    result = self._enrollment_service.enroll_student(
                        course_id, enrollment_data.name, enrollment_data.email, enrollment_data.roll_number)
            except CoursePulseException as e:
                raise self._http_error(e)
            return EnrollmentResponse(
                student_id=result.student.id,
                course_id=course_id,
                enrollment_id=result.enrollment.id if result.enrollment else None,
                student_created=result.student_created,
                already_enrolled=result.already_enrolled,
            )

        @self.app.post("/courses/{course_id}/enrollments/bulk", response_model=EnrollmentReportResponse)
        async def bulk_enroll(course_id: str, request: BulkEnrollRequest):
            """Enroll students from "name, email, roll number" lines."""
            try:
                with self._lock:
                    report = self._enrollment_service.bulk_enroll_from_text(course_id, request.text)
            except CoursePulseException as e:
                raise self._http_error(e)
            return EnrollmentReportResponse(
                enrolled=report.enrolled,
                already_enrolled=report.already_enrolled,
                students_created=report.students_created,
                skipped=report.skipped,
                student_ids=report.student_ids,
                errors=[{"line": line, "reason": reason} for line, reason in report.errors],
            )

        @self.app.delete("/courses/{course_id}/enrollments/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
        async def remove_enrollment(course_id: str, student_id: str):
            """Unenroll a student from a course."""
            try:
                with self._lock:
                    self._enrollment_service.remove_student(course_id, student_id)
            except CoursePulseException as e:
                raise self._http_error(e)

        @self.app.post("/enrollments/by-code", response_model=EnrollmentResponse,
                       status_code=status.HTTP_201_CREATED)
        async def enroll_by_code(request: EnrollByCodeRequest):
            """Self-enrollment with a course join code."""
            try:
                with self._lock:
                    enrollment = self._enrollment_service.enroll_by_code(
                        request.student_id, request.enrollment_code)
            except CoursePulseException as e:
                raise self._http_error(e)
            return EnrollmentResponse(
                student_id=enrollment.student_id,
                course_id=enrollment.course_id,
                enrollment_id=enrollment.id,
            )

        # Student endpoints
        @self.app.post("/students", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
        async def create_student(student_data: StudentCreate):
            """Register a new student."""
            try:
                with self._lock:
                    student = self._store.create_student(**student_data.model_dump())
            except CoursePulseException as e:
                raise self._http_error(e)
            self._mirror_upsert(EntityType.STUDENT, [student])
            return self._student_to_response(student)

        @self.app.get("/students/{student_id}", response_model=StudentResponse)
        async def get_student(student_id: str):
            """Get a student by ID."""
            try:
                return self._student_to_response(self._store.get_student(student_id))
            except CoursePulseException as e:
                raise self._http_error(e)

        @self.app.delete("/students/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
        async def delete_student(student_id: str):
            """Delete a student with their enrollments, feedback and grades."""
            try:
                with self._lock:
                    self._store.delete_student(student_id)
            except CoursePulseException as e:
                raise self._http_error(e)
            self._mirror_delete(EntityType.STUDENT, [student_id])

        @self.app.get("/students/{student_id}/gpa", response_model=Dict[str, Any])
        async def get_student_gpa(student_id: str):
            """Credit-weighted GPA over published grades."""
            try:
                gpa = self._gradebook_service.student_gpa(student_id)
            except CoursePulseException as e:
                raise self._http_error(e)
            return {"student_id": student_id, "gpa": gpa}

        @self.app.get("/students/{student_id}/grades", response_model=List[Dict[str, Any]])
        async def get_student_grades(student_id: str):
            """Published grades of a student."""
            try:
                self._store.get_student(student_id)
            except CoursePulseException as e:
                raise self._http_error(e)
            return [asdict(line) for line in self._gradebook_service.student_published_grades(student_id)]

        # Lecture endpoints
        @self.app.post("/lectures", response_model=LectureResponse, status_code=status.HTTP_201_CREATED)
        async def create_lecture(lecture_data: LectureCreate):
            """Schedule a lecture."""
            try:
                with self._lock:
                    lecture = self._store.create_lecture(**lecture_data.model_dump())
            except CoursePulseException as e:
                raise self._http_error(e)
            self._mirror_upsert(EntityType.LECTURE, [lecture])
            return self._lecture_to_response(lecture)

        @self.app.post("/lectures/{lecture_id}/{action}", response_model=LectureResponse)
        async def change_lecture_status(lecture_id: str, action: str):
            """Start or end a lecture."""
            operations = {"start": self._store.start_lecture, "end": self._store.end_lecture}
            if action not in operations:
                raise HTTPException(status_code=404, detail=f"Unknown lecture action: {action}")
            try:
                with self._lock:
                    lecture = operations[action](lecture_id)
            except CoursePulseException as e:
                raise self._http_error(e)
            self._mirror_upsert(EntityType.LECTURE, [lecture])
            return self._lecture_to_response(lecture)

        @self.app.put("/lectures/{lecture_id}/attendance", response_model=LectureResponse)
        async def mark_attendance(lecture_id: str, request: AttendanceRequest):
            """Record that a student attended a lecture."""
            try:
                with self._lock:
                    lecture = self._store.mark_attendance(lecture_id, request.student_id)
            except CoursePulseException as e:
                raise self._http_error(e)
            self._mirror_upsert(EntityType.LECTURE, [lecture])
            return self._lecture_to_response(lecture)

        @self.app.delete("/lectures/{lecture_id}", status_code=status.HTTP_204_NO_CONTENT)
        async def delete_lecture(lecture_id: str):
            """Delete a lecture and its feedback."""
            try:
                with self._lock:
                    self._store.delete_lecture(lecture_id)
            except CoursePulseException as e:
                raise self._http_error(e)
            self._mirror_delete(EntityType.LECTURE, [lecture_id])

        # Feedback endpoints
        @self.app.post("/feedback", response_model=FeedbackResponse, status_code=status.HTTP_201_CREATED)
        async def submit_feedback(feedback_data: FeedbackCreate):
            """Submit a student's feedback on a lecture."""
            try:
                with self._lock:
                    entry = self._store.create_feedback(**feedback_data.model_dump())
            except CoursePulseException as e:
                raise self._http_error(e)
            self._mirror_upsert(EntityType.FEEDBACK, [entry])
            return self._feedback_to_response(entry)

        # Assessment endpoints
        @self.app.post("/assessments", response_model=AssessmentResponse, status_code=status.HTTP_201_CREATED)
        async def create_assessment(assessment_data: AssessmentCreate):
            """Create a draft assessment."""
            try:
                with self._lock:
                    assessment = self._gradebook_service.create_assessment(**assessment_data.model_dump())
            except CoursePulseException as e:
                raise self._http_error(e)
            return self._assessment_to_response(assessment)

        @self.app.put("/assessments/{assessment_id}/grades", response_model=List[GradeResponse])
        async def bulk_set_grades(assessment_id: str, request: BulkGradesRequest):
            """Enter or overwrite marks for many students."""
            try:
                with self._lock:
                    grades = self._gradebook_service.bulk_set_grades(
                        assessment_id, [entry.model_dump() for entry in request.grades])
            except CoursePulseException as e:
                raise self._http_error(e)
            return [self._grade_to_response(grade) for grade in grades]

        @self.app.post("/assessments/{assessment_id}/{action}", response_model=AssessmentResponse)
        async def change_publication(assessment_id: str, action: str):
            """Publish or unpublish an assessment's grades."""
            operations = {
                "publish": self._gradebook_service.publish_grades,
                "unpublish": self._gradebook_service.unpublish_grades,
            }
            if action not in operations:
                raise HTTPException(status_code=404, detail=f"Unknown assessment action: {action}")
            try:
                with self._lock:
                    assessment = operations[action](assessment_id)
            except CoursePulseException as e:
                raise self._http_error(e)
            return self._assessment_to_response(assessment)

        @self.app.get("/assessments/{assessment_id}/stats", response_model=Dict[str, Any])
        async def get_assessment_stats(assessment_id: str):
            """Marks summary for an assessment."""
            try:
                return asdict(self._gradebook_service.assessment_stats(assessment_id))
            except CoursePulseException as e:
                raise self._http_error(e)

        # Bulk operations over a selection
        @self.app.post("/bulk/{collection}/archive", response_model=BulkResponse)
        async def bulk_archive(collection: str, selection: SelectionRequest):
            """Archive the selected courses."""
            entity_type = self._collection(collection)
            try:
                with self._lock:
                    archived = self._coordinator(entity_type, selection).bulk_archive()
            except (CoursePulseException, ValueError) as e:
                raise self._http_error(e)
            return BulkResponse(success=True, message=f"Archived {len(archived)} courses",
                                ids=[course.id for course in archived])

        @self.app.post("/bulk/{collection}/delete", response_model=BulkResponse)
        async def bulk_delete(collection: str, selection: SelectionRequest):
            """Delete the selected records."""
            entity_type = self._collection(collection)
            try:
                with self._lock:
                    deleted = self._coordinator(entity_type, selection).bulk_delete()
            except (CoursePulseException, ValueError) as e:
                raise self._http_error(e)
            return BulkResponse(success=True, message=f"Deleted {len(deleted)} {collection}", ids=deleted)

        @self.app.post("/bulk/{collection}/nudge", response_model=BulkResponse)
        async def bulk_nudge(collection: str, selection: SelectionRequest):
            """Nudge the selected students, or the silent students of the selected courses."""
            entity_type = self._collection(collection)
            try:
                with self._lock:
                    notice = self._coordinator(entity_type, selection).bulk_nudge(selection.message)
            except (CoursePulseException, ValueError) as e:
                raise self._http_error(e)
            student_ids = list(notice.student_ids) if notice else []
            return BulkResponse(success=True, message=f"Nudged {len(student_ids)} students", ids=student_ids)

        @self.app.post("/bulk/{collection}/export", response_model=ExportResponse)
        async def bulk_export(collection: str, selection: SelectionRequest):
            """Tabular export of the selected rows, or of the whole page."""
            entity_type = self._collection(collection)
            try:
                with self._lock:
                    table = self._coordinator(entity_type, selection).bulk_export()
            except (CoursePulseException, ValueError) as e:
                raise self._http_error(e)
            return ExportResponse(headers=list(table.headers), rows=[list(row) for row in table.rows])

    def _course_to_response(self, course: Course) -> CourseResponse:
        """Convert Course entity to response model."""
        return CourseResponse(**course.to_dict())

    def _student_to_response(self, student: Student) -> StudentResponse:
        """Convert Student entity to response model."""
        return StudentResponse(**student.to_dict())

    def _lecture_to_response(self, lecture: Lecture) -> LectureResponse:
        return LectureResponse(**lecture.to_dict())

    def _feedback_to_response(self, entry: FeedbackEntry) -> FeedbackResponse:
        return FeedbackResponse(**entry.to_dict())

    def _assessment_to_response(self, assessment: Assessment) -> AssessmentResponse:
        return AssessmentResponse(**assessment.to_dict())

    def _grade_to_response(self, grade: Grade) -> GradeResponse:
        return GradeResponse(**grade.to_dict())
