"""
Snowflake IDs.

Discord (and therefore Top.gg) identifies users, bots and guilds with unsigned
64-bit integers. They are always rendered as decimal strings on the wire so
that consumers with limited-precision numbers do not corrupt them.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Union

from pydantic import BeforeValidator, PlainSerializer

from topgg.errors import ParseError

MAX_SNOWFLAKE = 2**64 - 1

# Discord epoch (2015-01-01T00:00:00Z) in milliseconds.
DISCORD_EPOCH_MS = 1420070400000


class Snowflake(int):
    """
    A validated snowflake ID.

    Behaves like an ``int`` (and compares equal to one) while guaranteeing the
    value fits an unsigned 64-bit integer. ``str()`` gives the decimal form
    used in request paths and JSON bodies.

    Accepts:
        - an ``int`` in ``[0, 2**64 - 1]``
        - a non-empty string made only of ASCII digits
        - any object exposing an ``id`` attribute holding one of the above
          (user/guild objects from bot frameworks)

    Raises:
        ParseError: If the value is not a valid snowflake.
    """

    __slots__ = ()

    def __new__(cls, value: Any) -> "Snowflake":
        if isinstance(value, Snowflake):
            return value

        if isinstance(value, bool):
            raise ParseError(f"Invalid snowflake: {value!r}")

        if isinstance(value, str):
            if not value or not (value.isascii() and value.isdigit()):
                raise ParseError(f"Invalid snowflake: {value!r}")
            number = int(value)
        elif isinstance(value, int):
            number = value
        elif hasattr(value, "id"):
            return cls(value.id)
        else:
            raise ParseError(f"Cannot interpret {type(value).__name__} as a snowflake")

        if number < 0 or number > MAX_SNOWFLAKE:
            raise ParseError(f"Snowflake out of range: {number}")

        return super().__new__(cls, number)

    def __repr__(self) -> str:
        return f"Snowflake({int(self)})"

    def __str__(self) -> str:
        return str(int(self))

    @property
    def created_at(self) -> datetime:
        """When the entity this ID belongs to was created."""
        return snowflake_created_at(self)


SnowflakeLike = Union[Snowflake, int, str, Any]


def _validate_snowflake(value: Any) -> int:
    try:
        return int(Snowflake(value))
    except ParseError as e:
        raise ValueError(e.message) from e


# Snowflake field type for pydantic models: accepts ints or digit-only strings,
# serializes back to a decimal string in JSON mode.
SnowflakeField = Annotated[
    int,
    BeforeValidator(_validate_snowflake),
    PlainSerializer(lambda value: str(value), return_type=str, when_used="json"),
]


def snowflake_created_at(snowflake: int) -> datetime:
    """Extract the UTC creation timestamp embedded in a snowflake."""
    milliseconds = (int(snowflake) >> 22) + DISCORD_EPOCH_MS
    return datetime.fromtimestamp(milliseconds / 1000, tz=timezone.utc)
