"""
Curriculum Service
Resolves the ordered units of a course for its transcript.

Course structure lives in different tables depending on how the course was
created: CPD courses keep topics in `cpd_topics`, qualifications keep units in
`qual_units`, and older courses of either kind only have the generic `units`
table. Sources are tried in priority order and the first one with rows wins.
"""

from typing import Dict, List, Optional, Sequence

from app.config import settings
from app.database import database, row_to_dict
from app.logging_config import get_logger
from app.schemas.certificate import CourseUnit, UnitOverride
from app.schemas.template import CourseCategory

logger = get_logger(__name__)

FALLBACK_UNIT_TITLE = "Course Completion"


class UnitSource:
    """A table that may hold the units of a course"""

    name = "base"

    async def fetch(self, course_id: int) -> List[dict]:
        raise NotImplementedError

    def to_unit(self, row: dict, position: int, default_credits: int) -> CourseUnit:
        raise NotImplementedError


class CpdTopicSource(UnitSource):
    name = "cpd_topics"

    async def fetch(self, course_id: int) -> List[dict]:
        rows = await database.fetch_all(
            """
            SELECT topic_number, title, order_index
            FROM cpd_topics
            WHERE course_id = :course_id
            ORDER BY order_index ASC, topic_number ASC
            """,
            {"course_id": course_id}
        )
        return [row_to_dict(r) for r in rows]

    def to_unit(self, row: dict, position: int, default_credits: int) -> CourseUnit:
        return CourseUnit(
            unit_number=row.get("topic_number") or position,
            title=row["title"],
            credits=default_credits,
        )


class QualUnitSource(UnitSource):
    name = "qual_units"

    async def fetch(self, course_id: int) -> List[dict]:
        rows = await database.fetch_all(
            """
            SELECT unit_number, title, credits
            FROM qual_units
            WHERE course_id = :course_id
            ORDER BY unit_number ASC
            """,
            {"course_id": course_id}
        )
        return [row_to_dict(r) for r in rows]

    def to_unit(self, row: dict, position: int, default_credits: int) -> CourseUnit:
        return CourseUnit(
            unit_number=row.get("unit_number") or position,
            title=row["title"],
            credits=row.get("credits") or default_credits,
        )


class LegacyUnitSource(UnitSource):
    name = "units"

    async def fetch(self, course_id: int) -> List[dict]:
        rows = await database.fetch_all(
            """
            SELECT id, title, order_index
            FROM units
            WHERE course_id = :course_id
            ORDER BY order_index ASC
            """,
            {"course_id": course_id}
        )
        return [row_to_dict(r) for r in rows]

    def to_unit(self, row: dict, position: int, default_credits: int) -> CourseUnit:
        return CourseUnit(
            unit_number=row.get("order_index") or row.get("id") or position,
            title=row["title"],
            credits=default_credits,
        )


DEFAULT_SOURCES: Dict[CourseCategory, Sequence[UnitSource]] = {
    CourseCategory.CPD: (CpdTopicSource(), LegacyUnitSource()),
    CourseCategory.QUALIFICATION: (QualUnitSource(), LegacyUnitSource()),
}


class CurriculumService:
    """Prioritised unit lookup with a never-empty result"""

    def __init__(
        self,
        sources: Optional[Dict[CourseCategory, Sequence[UnitSource]]] = None,
        default_credits: Optional[int] = None
    ):
        self.sources = sources if sources is not None else DEFAULT_SOURCES
        self.default_credits = default_credits or settings.DEFAULT_UNIT_CREDITS

    def fallback_units(self) -> List[CourseUnit]:
        return [CourseUnit(unit_number=1, title=FALLBACK_UNIT_TITLE, credits=self.default_credits)]

    async def resolve_units(self, course_id: int, category: CourseCategory) -> List[CourseUnit]:
        """
        Ordered units for a course

        A source that raises is logged and skipped like an empty one. When no
        source has rows a single "Course Completion" unit is returned.
        """
        for source in self.sources.get(category, ()):
            try:
                rows = await source.fetch(course_id)
            except Exception:
                logger.warning(
                    "Unit source '%s' failed for course %s, trying next source",
                    source.name, course_id, exc_info=True
                )
                continue

            if rows:
                units = [
                    source.to_unit(row, position, self.default_credits)
                    for position, row in enumerate(rows, start=1)
                ]
                logger.info("Found %d units in '%s' for course %s", len(units), source.name, course_id)
                return units

            logger.info("No units in '%s' for course %s", source.name, course_id)

        logger.warning("No units found for course %s, using generic unit structure", course_id)
        return self.fallback_units()

    def from_overrides(self, overrides: List[UnitOverride]) -> List[CourseUnit]:
        """Units typed in by an operator"""
        return [
            CourseUnit(
                unit_number=position,
                title=unit.name,
                credits=unit.credits if unit.credits is not None else self.default_credits,
            )
            for position, unit in enumerate(overrides, start=1)
        ]


# Create singleton instance
curriculum_service = CurriculumService()
