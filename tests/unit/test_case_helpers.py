"""
Unit tests for case number and channel name helpers.
"""

import pytest

from src.modules.cases.service import generate_case_number, generate_channel_name


@pytest.mark.unit
class TestCaseNumbers:
    def test_format(self):
        assert generate_case_number(2026, 7, "John.Doe") == "AA-2026-0007-johndoe"

    def test_counter_wider_than_padding(self):
        assert generate_case_number(2026, 12345, "amy") == "AA-2026-12345-amy"

    @pytest.mark.parametrize("username", ["", "___", "☆☆"])
    def test_unusable_username_falls_back(self, username):
        assert generate_case_number(2025, 1, username) == "AA-2025-0001-client"


@pytest.mark.unit
class TestChannelNames:
    def test_lowercased_with_prefix(self):
        assert generate_channel_name("AA-2026-0007-johndoe") == "case-aa-2026-0007-johndoe"

    def test_capped_at_discord_limit(self):
        assert len(generate_channel_name("AA-2026-0001-" + "x" * 200)) == 100
