"""
Scatter-gather over the Classroom API for one user.

Courses are listed first; a failure there fails the request. Rosters and
courseWork for every course, then the submissions of every assignment, are
fetched on a bounded thread pool. A failed piece is logged and recorded in
errors; the rest of the snapshot is kept. The pieces are fetched
independently and may reflect slightly different moments.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Optional

from aulux.plugins.classroom.classroom_client import ClassroomClient, collect_pages

from .aggregator import ClassroomSnapshot

DEFAULT_MAX_WORKERS = 8


class ClassroomFetcher:
    """Gathers a ClassroomSnapshot with at most max_workers requests in flight."""

    def __init__(self, client: ClassroomClient, max_workers: int = DEFAULT_MAX_WORKERS):
        self.client = client
        self.max_workers = max(1, int(max_workers or DEFAULT_MAX_WORKERS))
        self.logger = logging.getLogger(self.__class__.__name__)

    def _courses(self) -> List[Dict[str, Any]]:
        return collect_pages(self.client.list_courses, "courses")

    def _roster(self, course_id: str) -> List[Dict[str, Any]]:
        return collect_pages(lambda page_token=None: self.client.list_students(course_id, page_token=page_token), "students")

    def _course_work(self, course_id: str) -> List[Dict[str, Any]]:
        return collect_pages(
            lambda page_token=None: self.client.list_course_work(course_id, page_token=page_token),
            "courseWork",
        )

    def _submissions(self, course_id: str, work_id: str, user_id: Optional[str]) -> List[Dict[str, Any]]:
        return collect_pages(
            lambda page_token=None: self.client.list_submissions(
                course_id, work_id, user_id=user_id, page_token=page_token
            ),
            "studentSubmissions",
        )

    def _record_error(self, errors: List[Dict[str, Any]], resource: str, course_id: str, exc: Exception,
                      work_id: Optional[str] = None) -> None:
        self.logger.warning(f"Failed to fetch {resource} for course {course_id}"
                            f"{f' work {work_id}' if work_id else ''}: {exc}")
        entry = {"resource": resource, "courseId": course_id, "error": str(exc)}
        if work_id:
            entry["workId"] = work_id
        errors.append(entry)

    def snapshot(self, include_rosters: bool = True, user_id: Optional[str] = None) -> ClassroomSnapshot:
        """Fetch courses, rosters, courseWork and submissions.

        user_id restricts submissions to one user ("me" for the caller).
        """
        courses = self._courses()
        rosters: Dict[str, List[Dict[str, Any]]] = {}
        course_work: Dict[str, List[Dict[str, Any]]] = {}
        submissions: Dict[tuple, List[Dict[str, Any]]] = {}
        errors: List[Dict[str, Any]] = []

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {}
            for course in courses:
                course_id = course.get("id")
                if include_rosters:
                    futures[executor.submit(self._roster, course_id)] = ("students", course_id)
                futures[executor.submit(self._course_work, course_id)] = ("courseWork", course_id)

            for future in as_completed(futures):
                resource, course_id = futures[future]
                try:
                    items = future.result()
                except Exception as e:
                    self._record_error(errors, resource, course_id, e)
                    continue
                if resource == "students":
                    rosters[course_id] = items
                else:
                    course_work[course_id] = items

            sub_futures = {}
            for course_id, works in course_work.items():
                for work in works:
                    work_id = work.get("id")
                    sub_futures[executor.submit(self._submissions, course_id, work_id, user_id)] = (course_id, work_id)

            for future in as_completed(sub_futures):
                course_id, work_id = sub_futures[future]
                try:
                    submissions[(course_id, work_id)] = future.result()
                except Exception as e:
                    self._record_error(errors, "studentSubmissions", course_id, e, work_id=work_id)

        self.logger.info(
            f"Classroom snapshot: {len(courses)} courses, "
            f"{sum(len(w) for w in course_work.values())} assignments, "
            f"{sum(len(s) for s in submissions.values())} submissions, {len(errors)} errors"
        )
        return ClassroomSnapshot(
            courses=courses,
            rosters=rosters,
            course_work=course_work,
            submissions=submissions,
            errors=errors,
        )
