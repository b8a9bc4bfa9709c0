from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from uuid import UUID
from sqlmodel import Session, select

from sprintflow.config import settings as app_settings
from sprintflow.schema import ProjectSprintSettings


@dataclass
class SprintSettings:
    default_sprint_duration: int
    done_column_ids: List[UUID] = field(default_factory=list)


class SprintSettingsService:
    """Per-project sprint defaults, falling back to application config."""

    def __init__(self, session: Session):
        self.session = session

    def _row(self, project_id: UUID) -> Optional[ProjectSprintSettings]:
        return self.session.exec(
            select(ProjectSprintSettings).where(ProjectSprintSettings.project_id == project_id)
        ).first()

    def get(self, project_id: UUID) -> SprintSettings:
        row = self._row(project_id)
        if not row:
            return SprintSettings(default_sprint_duration=app_settings.default_sprint_duration_days)
        return SprintSettings(
            default_sprint_duration=row.default_sprint_duration,
            done_column_ids=[UUID(str(value)) for value in row.done_column_ids or []],
        )

    def update(
        self,
        project_id: UUID,
        default_sprint_duration: Optional[int] = None,
        done_column_ids: Optional[List[UUID]] = None,
    ) -> SprintSettings:
        row = self._row(project_id) or ProjectSprintSettings(
            project_id=project_id,
            default_sprint_duration=app_settings.default_sprint_duration_days,
        )
        if default_sprint_duration is not None:
            row.default_sprint_duration = default_sprint_duration
        if done_column_ids is not None:
            row.done_column_ids = [str(column_id) for column_id in done_column_ids]
        row.updated_at = datetime.utcnow()
        self.session.add(row)
        self.session.flush()
        return self.get(project_id)
