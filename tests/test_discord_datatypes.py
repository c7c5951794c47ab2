from types import SimpleNamespace

import pytest

from taskcord.datatypes.discord_datatypes import ChannelID, GuildID, RoleID, UserID


def test_userid_from_int_and_str_and_equality_and_hash():
    u1 = UserID(12345)
    assert int(u1) == 12345
    assert str(u1) == "12345"

    u2 = UserID(" 12345 ")
    assert u1 == u2

    u3 = UserID.from_int(67890)
    assert isinstance(u3, UserID)
    assert u3.to_int() == 67890

    u4 = UserID.from_user(SimpleNamespace(id=111))  # type: ignore
    assert u4 == 111
    assert u4 == "111"

    assert len({u1, u2, u3, u4}) == 3


@pytest.mark.parametrize("bad", [[], None, True, "not a number", 1.5])
def test_invalid_values(bad):
    with pytest.raises(ValueError):
        UserID(bad)  # type: ignore


def test_copy_from_other_wrapper():
    assert GuildID(UserID(5)) == GuildID(5)


def test_different_kinds_do_not_compare_equal():
    assert GuildID(5) != UserID(5)


def test_mentions():
    assert UserID(42).mention() == "<@42>"
    assert ChannelID(7).mention() == "<#7>"
    assert RoleID("5").mention() == "<@&5>"
    assert repr(GuildID(3)) == "GuildID('3')"
