# app/repositories/enrollment_repo.py
import uuid

from sqlmodel import Session, select

from app.models.enrollment import Enrollment


class EnrollmentRepository:

    def get(
        self, session: Session, user_id: uuid.UUID, course_id: uuid.UUID
    ) -> Enrollment | None:
        stmt = select(Enrollment).where(
            Enrollment.user_id == user_id, Enrollment.course_id == course_id
        )
        return session.exec(stmt).first()

    def ensure_enrolled(
        self, session: Session, user_id: uuid.UUID, course_id: uuid.UUID
    ) -> Enrollment | None:
        """
        Enroll the user unless already enrolled. No commit.

        Returns the new Enrollment, or None when the pair already existed.
        """
        if self.get(session, user_id, course_id) is not None:
            return None

        enrollment = Enrollment(
            user_id=user_id,
            course_id=course_id,
            progress_percentage=0,
            is_completed=False,
        )
        session.add(enrollment)
        session.flush()
        return enrollment
