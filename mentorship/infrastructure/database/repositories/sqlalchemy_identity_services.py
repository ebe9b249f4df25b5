"""SQLAlchemy identity lookups: display names and class rosters."""
from sqlalchemy import select

from mentorship.application.interfaces import IClassMembershipService, IUserService
from mentorship.infrastructure.database.models import (
    ClassCounselorModel,
    ClassStudentModel,
    UserModel,
)
from mentorship.infrastructure.database.repositories.base import SQLAlchemyRepository


class SQLAlchemyUserService(SQLAlchemyRepository, IUserService):

    async def get_display_name(self, user_id: str) -> str:
        """Display name, falling back to the email and then the id."""
        async with self._scope() as session:
            user = await session.get(UserModel, user_id)
        if user is None:
            return user_id
        return user.display_name or user.email or user_id


class SQLAlchemyClassMembershipService(SQLAlchemyRepository, IClassMembershipService):

    async def get_student_ids(self, class_id: str) -> list[str]:
        async with self._scope() as session:
            result = await session.execute(
                select(ClassStudentModel.student_user_id)
                .where(ClassStudentModel.class_id == class_id)
                .order_by(ClassStudentModel.student_user_id)
            )
            return list(result.scalars().all())

    async def get_counselor_ids(self, class_id: str) -> list[str]:
        async with self._scope() as session:
            result = await session.execute(
                select(ClassCounselorModel.counselor_user_id)
                .where(ClassCounselorModel.class_id == class_id)
                .order_by(ClassCounselorModel.counselor_user_id)
            )
            return list(result.scalars().all())
