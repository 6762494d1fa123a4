"""
Template Service
Looks up the active certificate/transcript template for a course type
"""

from pathlib import Path, PureWindowsPath
from typing import Optional, Union

from app.config import settings
from app.database import database, row_to_dict
from app.errors import TemplateLookupError, PersistenceError
from app.logging_config import get_logger
from app.schemas.template import TemplateKind, CourseCategory, TemplateRecord

logger = get_logger(__name__)


class TemplateService:
    """Read-only access to active templates"""

    def __init__(self, templates_dir: Optional[Union[str, Path]] = None):
        self.templates_dir = Path(templates_dir or settings.TEMPLATES_DIR)

    async def get_active_template(self, kind: TemplateKind, category: CourseCategory) -> TemplateRecord:
        try:
            row = await database.fetch_one(
                """
                SELECT * FROM certificate_templates
                WHERE template_type = :template_type
                  AND course_type = :course_type
                  AND is_active = TRUE
                LIMIT 1
                """,
                {"template_type": kind.value, "course_type": category.value}
            )
        except Exception as e:
            raise PersistenceError(f"Failed to look up {kind.value} template: {e}") from e

        if not row:
            raise TemplateLookupError(kind.value, category.value)

        return TemplateRecord(**row_to_dict(row))

    def resolve_path(self, template: TemplateRecord) -> Path:
        """
        Map a stored template path onto the local templates directory

        Stored paths may come from Windows uploads, so only the file name is
        kept and it is resolved under TEMPLATES_DIR.
        """
        file_name = PureWindowsPath(template.template_path).name
        path = self.templates_dir / file_name
        if not path.is_file():
            raise TemplateLookupError(
                template.template_type.value,
                template.course_type.value,
                detail=f"{template.template_type.value.capitalize()} template not found at: {path}"
            )
        return path

    async def load(self, kind: TemplateKind, category: CourseCategory) -> Path:
        """Active template file for (kind, category)"""
        template = await self.get_active_template(kind, category)
        path = self.resolve_path(template)
        logger.info("Using %s template '%s' (%s)", kind.value, template.template_name, path)
        return path


# Create singleton instance
template_service = TemplateService()
