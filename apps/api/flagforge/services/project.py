"""
Project service.
"""

from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from flagforge.models.project import Project


class ProjectService:
    """Project lookups for feature validation."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, org_id: UUID, project_id: str) -> Project | None:
        """Get a project of the organization by its string id."""
        try:
            pk = UUID(project_id)
        except ValueError:
            return None
        stmt = select(Project).where(Project.id == pk, Project.org_id == org_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def exists(self, org_id: UUID, project_id: str) -> bool:
        return await self.get_by_id(org_id, project_id) is not None
