"""
Type-safe wrapper classes for Discord identifiers.

Discord snowflakes are 64-bit integers that are often passed around as
strings. These wrappers give guild, user, channel and role ids a single
consistent representation so they cannot be mixed up in service signatures.
"""

from __future__ import annotations

from typing import Union

import discord


class Snowflake:
    """
    Base class for snowflake wrappers.

    The value is stored as a string for JSON parity and compares equal to an
    instance of the same class, a matching ``int`` or a matching ``str``.

    Example:
        >>> gid = GuildID(123456789012345678)
        >>> gid.to_int()
        123456789012345678
        >>> gid == "123456789012345678"
        True
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, int, "Snowflake"]) -> None:
        if isinstance(value, Snowflake):
            self._value = value._value
        elif isinstance(value, bool):
            raise ValueError(f"Cannot create {type(self).__name__} from bool")
        elif isinstance(value, int):
            self._value = str(value)
        elif isinstance(value, str):
            self._value = str(int(value.strip()))
        else:
            raise ValueError(f"Cannot create {type(self).__name__} from {type(value).__name__}: {value}")

    @classmethod
    def from_int(cls, value: int):
        return cls(value)

    def to_int(self) -> int:
        """Convert to an integer for Discord API calls and SQL parameters."""
        return int(self._value)

    def __int__(self) -> int:
        return int(self._value)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, type(self)):
            return self._value == other._value
        if isinstance(other, str):
            return self._value == other
        if isinstance(other, int) and not isinstance(other, bool):
            return self._value == str(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)


class GuildID(Snowflake):
    """Type-safe wrapper for Discord guild (server) ids."""

    __slots__ = ()


class UserID(Snowflake):
    """Type-safe wrapper for Discord user ids."""

    __slots__ = ()

    @classmethod
    def from_user(cls, member: Union[discord.Member, discord.User]) -> "UserID":
        return cls(member.id)

    def mention(self) -> str:
        return f"<@{self._value}>"


class ChannelID(Snowflake):
    """Type-safe wrapper for Discord channel ids."""

    __slots__ = ()

    def mention(self) -> str:
        return f"<#{self._value}>"


class RoleID(Snowflake):
    """Type-safe wrapper for Discord role ids."""

    __slots__ = ()

    def mention(self) -> str:
        return f"<@&{self._value}>"
