"""
Registration Number Service
Issues the numbers printed on certificate/transcript pairs
"""

from typing import Optional

from app.config import settings
from app.database import database
from app.errors import AllocationError, InvalidRegistrationNumberError
from app.logging_config import get_logger

logger = get_logger(__name__)

COUNTER_NAME = "registration_number"


class RegistrationService:
    """
    Registration numbers come from a counter row bumped by a single
    UPDATE ... RETURNING statement, so the database serialises concurrent
    allocations and no two callers can read the same value.
    """

    def __init__(
        self,
        prefix: Optional[str] = None,
        width: Optional[int] = None,
        start: Optional[int] = None
    ):
        self.prefix = settings.REGISTRATION_NUMBER_PREFIX if prefix is None else prefix
        self.width = width or settings.REGISTRATION_NUMBER_WIDTH
        self.start = settings.REGISTRATION_NUMBER_START if start is None else start

    def format(self, value: int) -> str:
        return f"{self.prefix}{value:0{self.width}d}"

    async def _increment(self) -> Optional[int]:
        return await database.fetch_val(
            """
            UPDATE registration_counters
            SET last_value = last_value + 1
            WHERE name = :name
            RETURNING last_value
            """,
            {"name": COUNTER_NAME}
        )

    async def allocate(self) -> str:
        """Next registration number"""
        try:
            value = await self._increment()
            if value is None:
                # First allocation ever: seed the counter, losing races harmlessly
                await database.execute(
                    """
                    INSERT INTO registration_counters (name, last_value)
                    VALUES (:name, :last_value)
                    ON CONFLICT (name) DO NOTHING
                    """,
                    {"name": COUNTER_NAME, "last_value": self.start - 1}
                )
                value = await self._increment()
        except Exception as e:
            raise AllocationError(f"Could not allocate registration number: {e}") from e

        if value is None:
            raise AllocationError("Registration counter row is missing")

        number = self.format(value)
        logger.info("Registration number auto-generated: %s", number)
        return number

    def accept(self, registration_number: str) -> str:
        """
        Operator-supplied number for corrections. Uniqueness is the caller's
        concern; nothing is checked here.
        """
        number = registration_number.strip()
        if not number:
            raise InvalidRegistrationNumberError("Registration number is required")
        logger.info("Using provided registration number: %s", number)
        return number


# Create singleton instance
registration_service = RegistrationService()
