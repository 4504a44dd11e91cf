"""
REST API tests against the seeded dataset.
"""

import pytest
from fastapi.testclient import TestClient

from coursepulse.api import CoursePulseRestAPI
from coursepulse.core.enums import CourseStatus, EntityType
from coursepulse.services import (
    EnrollmentService,
    GradebookService,
    QueryEngine,
    RecordingNotifier,
    SyncService,
)


@pytest.fixture
def api_sync(seeded_store, remote, clock):
    service = SyncService(seeded_store, remote=remote, timeout=1.0, clock=clock)
    yield service
    service.shutdown(wait_for_tasks=True)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(seeded_store, clock, api_sync, notifier):
    api = CoursePulseRestAPI(
        seeded_store,
        QueryEngine(seeded_store, clock=clock),
        EnrollmentService(seeded_store, api_sync),
        GradebookService(seeded_store, api_sync, clock=clock),
        sync_service=api_sync,
        notifier=notifier,
    )
    return TestClient(api.app)


class TestQueries:

    def test_health(self, client, seeded_store):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["revision"] == seeded_store.revision

    def test_search_courses(self, client):
        response = client.get("/courses", params={"search": "CS2"})
        assert response.status_code == 200
        body = response.json()
        assert {item["code"] for item in body["items"]} == {"CS201", "CS202"}
        assert body["total_filtered_count"] == 2
        assert body["has_more"] is False

    def test_professor_scope_and_paging(self, client):
        body = client.get("/courses", params={"professor_id": "prof-1", "page_size": 1}).json()
        assert len(body["items"]) == 1
        assert body["has_more"] is True
        assert body["total_filtered_count"] == 2

    def test_unknown_filter_is_rejected(self, client):
        response = client.get("/students", params={"filter": "sleepy"})
        assert response.status_code == 400

    def test_unknown_collection(self, client):
        assert client.get("/grades-and-more").status_code == 404


class TestMutations:

    def test_create_course(self, client):
        response = client.post("/courses", json={
            "code": "PH101", "name": "Physics I", "professor_id": "prof-1", "credits": 4,
        })
        assert response.status_code == 201
        body = response.json()
        assert body["code"] == "PH101"
        assert body["status"] == "active"
        assert len(body["enrollment_code"]) == 6

    def test_duplicate_student_email(self, client):
        response = client.post("/students", json={"name": "Rahul Again", "email": "rahul.s@iitgn.ac.in"})
        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "DuplicateKey"

    def test_missing_course(self, client):
        response = client.get("/courses/nope")
        assert response.status_code == 404

    def test_feedback_for_unknown_lecture(self, client):
        response = client.post("/feedback", json={
            "lecture_id": "lec-404", "student_id": "stu-1", "understanding_level": "fully",
        })
        assert response.status_code in (404, 422)

    def test_enroll_and_bulk_enroll(self, client, seeded_store):
        single = client.post("/courses/course-4/enrollments", json={
            "name": "New Person", "email": "new.person@example.edu",
        })
        assert single.status_code == 201
        assert single.json()["student_created"] is True

        report = client.post("/courses/course-4/enrollments/bulk", json={
            "text": "New Person, new.person@example.edu\nbroken line\nAmy Tan, amy@example.edu",
        }).json()
        assert report["enrolled"] == 1
        assert report["already_enrolled"] == 1
        assert report["skipped"] == 1
        assert report["errors"][0]["line"] == 2
        emails = {s.email for s in seeded_store.get_course_students("course-4")}
        assert {"new.person@example.edu", "amy@example.edu"} <= emails

    def test_publish_and_read_grades(self, client):
        response = client.post("/assessments/asm-2/publish")
        assert response.status_code == 200
        assert response.json()["status"] == "published"
        grades = client.get("/students/stu-1/grades").json()
        assert "asm-2" in {line["assessment_id"] for line in grades}


class TestBulkRoutes:

    def test_archive_selected_courses(self, client, seeded_store, api_sync):
        response = client.post("/bulk/courses/archive", json={"ids": ["course-1", "course-3"]})
        assert response.status_code == 200
        assert sorted(response.json()["ids"]) == ["course-1", "course-3"]
        assert seeded_store.get_course("course-1").status is CourseStatus.ARCHIVED
        assert api_sync.wait_for_pending(timeout=5)
        assert api_sync.statistics.mirrors_succeeded == 1

    def test_archive_on_students_is_rejected(self, client):
        response = client.post("/bulk/students/archive", json={"ids": ["stu-1"]})
        assert response.status_code == 400

    def test_export_whole_page_and_selection(self, client):
        whole = client.post("/bulk/courses/export", json={}).json()
        assert whole["headers"][0] == "Code"
        assert len(whole["rows"]) == 4

        picked = client.post("/bulk/courses/export", json={"ids": ["course-2"]}).json()
        assert [row[0] for row in picked["rows"]] == ["CS202"]

    def test_nudge_students(self, client, notifier):
        response = client.post("/bulk/students/nudge", json={
            "ids": ["stu-1", "stu-2"], "message": "Please share feedback",
        })
        assert response.status_code == 200
        assert response.json()["ids"] == ["stu-1", "stu-2"]
        assert notifier.notices[0].message == "Please share feedback"

    def test_delete_selected_students(self, client, seeded_store):
        response = client.post("/bulk/students/delete", json={"ids": ["stu-15"]})
        assert response.status_code == 200
        assert seeded_store.count(EntityType.STUDENT) == 14
