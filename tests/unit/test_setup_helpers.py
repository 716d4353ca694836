"""
Unit tests for the server setup color and permission helpers.
"""

import pytest

from src.modules.setup.service import DEFAULT_ROLE_COLOR, build_permissions, parse_color


@pytest.mark.unit
class TestParseColor:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("#112233", 0x112233),
            ("Blue", 0x0000FF),
            ("DarkRed", 0x8B0000),
            (0xABCDEF, 0xABCDEF),
            ("Chartreuse", DEFAULT_ROLE_COLOR),
            ("#zzzzzz", DEFAULT_ROLE_COLOR),
            (None, DEFAULT_ROLE_COLOR),
        ],
    )
    def test_values(self, value, expected):
        assert parse_color(value) == expected


@pytest.mark.unit
class TestBuildPermissions:
    def test_known_flags_set(self):
        permissions = build_permissions(["manage_messages", "kick_members"])

        assert permissions.manage_messages is True
        assert permissions.kick_members is True
        assert permissions.administrator is False

    def test_unknown_names_ignored(self):
        permissions = build_permissions(["send_messages", "fly_to_the_moon"])

        assert permissions.value == build_permissions(["send_messages"]).value

    def test_empty(self):
        assert build_permissions([]).value == 0
