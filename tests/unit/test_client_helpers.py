"""
Unit tests for the pure helpers behind applications, retainers, feedback
and reminders, plus reminder delivery against a mocked Discord client.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import discord
import pytest

from src.features.feedback.feedback_cog import star_bar
from src.modules.cases.feedback_service import summarize_ratings
from src.modules.cases.reminder_service import ReminderService, parse_time_string
from src.modules.cases.retainer_service import FALLBACK_TEMPLATE, format_agreement
from src.modules.jobs.application_service import answer_errors
from src.ui.views.application import MAX_INPUTS, build_inputs

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

QUESTIONS = [
    {"id": "roblox_username", "question": "Roblox username?", "type": "short", "max_length": 20},
    {"id": "hours", "question": "Hours per week?", "type": "number", "min_value": 1, "max_value": 168},
    {"id": "team", "question": "Preferred team?", "type": "choice", "choices": ["Litigation", "Contracts"]},
    {"id": "notes", "question": "Anything else?", "type": "paragraph", "required": False},
]


@pytest.mark.unit
class TestParseTimeString:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("10m", timedelta(minutes=10)),
            ("2h", timedelta(hours=2)),
            ("1d", timedelta(days=1)),
            ("3 Hours", timedelta(hours=3)),
            ("7days", timedelta(days=7)),
        ],
    )
    def test_accepted_formats(self, value, expected):
        assert parse_time_string(value) == expected

    @pytest.mark.parametrize("value", ["", "soon", "0m", "8d", "169h", "-5m", "10s"])
    def test_rejected(self, value):
        assert parse_time_string(value) is None


@pytest.mark.unit
class TestAnswerErrors:
    def test_valid_answers(self):
        answers = {"roblox_username": "Lawyer1", "hours": "20", "team": "litigation"}

        assert answer_errors(QUESTIONS, answers) == []

    def test_every_problem_reported(self):
        answers = {"roblox_username": "x" * 21, "hours": "lots", "team": "Criminal"}

        errors = answer_errors(QUESTIONS, answers)

        assert errors == [
            "Roblox username? must be at most 20 characters",
            "Hours per week? must be a number",
            "Preferred team? must be one of: Litigation, Contracts",
        ]

    def test_missing_required_but_optional_skipped(self):
        errors = answer_errors(QUESTIONS, {"hours": "5", "team": "Contracts"})

        assert errors == ["Roblox username? is required"]


@pytest.mark.unit
class TestFormatAgreement:
    def test_signed_agreement(self):
        text = format_agreement(FALLBACK_TEMPLATE, "Jane", "Counsel", signature="Jane Client", signed_at=NOW)

        assert "Jane retains Anarchy & Associates, represented by Counsel." in text
        assert "Signed: Jane Client" in text
        assert "Date: 2026-03-01" in text

    def test_unsigned_leaves_blank_line(self):
        text = format_agreement("[SIGNATURE]", "Jane", "Counsel", signature="")

        assert text == "_" * 20


@pytest.mark.unit
class TestRatings:
    def test_summary(self):
        feedback = [SimpleNamespace(rating=rating) for rating in (5, 4, 4, 1)]

        summary = summarize_ratings(feedback)

        assert summary["total"] == 4
        assert summary["average_rating"] == 3.5
        assert summary["distribution"] == {1: 1, 2: 0, 3: 0, 4: 2, 5: 1}

    @pytest.mark.parametrize("rating, bar", [(0, "☆☆☆☆☆"), (1, "★☆☆☆☆"), (4.6, "★★★★★")])
    def test_star_bar(self, rating, bar):
        assert star_bar(rating) == bar


@pytest.mark.unit
class TestApplicationInputs:
    def test_inputs_follow_questions(self):
        inputs = build_inputs(QUESTIONS)

        assert [text_input.custom_id for text_input in inputs] == ["roblox_username", "hours", "team", "notes"]
        assert inputs[0].max_length == 20
        assert inputs[2].placeholder == "Litigation / Contracts"
        assert inputs[3].style is discord.TextStyle.paragraph
        assert inputs[3].required is False

    def test_capped_at_modal_limit(self):
        questions = [{"id": f"q{index}", "question": f"Question {index}"} for index in range(8)]

        assert len(build_inputs(questions)) == MAX_INPUTS


@pytest.mark.unit
class TestReminderDelivery:
    @pytest.fixture
    def service(self, mock_config_manager, mock_event_bus, mock_logger, mocker):
        return ReminderService(
            mock_config_manager, mock_event_bus, mock_logger, mocker.MagicMock(), clock=lambda: NOW
        )

    @pytest.fixture
    def reminder(self):
        return SimpleNamespace(
            id=7, guild_id=1, user_id=42, message="File the brief", channel_id=900, scheduled_for=NOW
        )

    async def test_posts_in_channel_and_marks_delivered(self, service, reminder, patch_database, mocker):
        # Arrange
        channel = mocker.MagicMock(spec=discord.TextChannel)
        channel.send = mocker.AsyncMock()
        client = mocker.MagicMock()
        client.get_channel.return_value = channel
        service._client = client
        mocker.patch.object(service._repo, "find_one_where", mocker.AsyncMock(return_value=reminder))
        update = mocker.patch.object(service._repo, "update", mocker.AsyncMock())

        # Act
        delivered = await service.deliver_reminder(reminder.id)

        # Assert
        assert delivered is True
        update.assert_awaited_once_with(patch_database, 7, {"is_active": False, "delivered_at": NOW})
        channel.send.assert_awaited_once_with("<@42> Reminder: File the brief")

    async def test_falls_back_to_dm(self, service, reminder, patch_database, mocker):
        user = mocker.MagicMock()
        user.send = mocker.AsyncMock()
        client = mocker.MagicMock()
        client.get_channel.return_value = None
        client.get_user.return_value = user
        service._client = client
        mocker.patch.object(service._repo, "find_one_where", mocker.AsyncMock(return_value=reminder))
        mocker.patch.object(service._repo, "update", mocker.AsyncMock())

        await service.deliver_reminder(reminder.id)

        user.send.assert_awaited_once_with("Reminder: File the brief")

    async def test_discord_refusal_still_counts_as_delivered(self, service, reminder, patch_database, mocker):
        # Arrange
        response = mocker.MagicMock(status=403, reason="Forbidden")
        user = mocker.MagicMock()
        user.send = mocker.AsyncMock(side_effect=discord.Forbidden(response, "Cannot send messages to this user"))
        client = mocker.MagicMock()
        client.get_channel.return_value = None
        client.get_user.return_value = user
        service._client = client
        mocker.patch.object(service._repo, "find_one_where", mocker.AsyncMock(return_value=reminder))
        update = mocker.patch.object(service._repo, "update", mocker.AsyncMock())

        # Act
        delivered = await service.deliver_reminder(reminder.id)

        # Assert
        assert delivered is True
        update.assert_awaited_once()

    async def test_inactive_reminder_not_sent(self, service, patch_database, mocker):
        service._client = mocker.MagicMock()
        mocker.patch.object(service._repo, "find_one_where", mocker.AsyncMock(return_value=None))

        assert await service.deliver_reminder(99) is False
        service._client.get_channel.assert_not_called()

    def test_nothing_scheduled_before_start(self, service, reminder):
        assert service.schedule(reminder) is None
        assert service.scheduled_count == 0

    async def test_one_task_per_reminder(self, service, reminder, mocker):
        # Arrange
        service._client = mocker.MagicMock()
        reminder.scheduled_for = NOW + timedelta(hours=1)

        # Act
        first = service.schedule(reminder)
        second = service.schedule(reminder)

        # Assert
        assert first is second
        assert service.scheduled_count == 1
        await service.stop_all()
        assert service.scheduled_count == 0
