"""
Job application form.

The posting's questions become the modal's text inputs. Discord allows at
most five inputs per modal, so only the first five questions are asked
and checked; the configured defaults plus one custom question fit exactly.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Mapping

import discord
from discord.ui import Modal, TextInput

from src.core.logging.logger import get_logger
from src.modules.jobs.application_service import MAX_FORM_QUESTIONS
from src.ui.embeds import EmbedFactory, truncate

logger = get_logger(__name__)

MAX_INPUTS = MAX_FORM_QUESTIONS
LABEL_LIMIT = 45
PARAGRAPH_LIMIT = 1000
SHORT_LIMIT = 100

SubmitCallback = Callable[[discord.Interaction, Dict[str, str]], Awaitable[None]]


def build_inputs(questions: List[Mapping[str, Any]]) -> List[TextInput]:
    """One TextInput per question, keyed by ``custom_id`` = question id."""
    inputs = []
    for question in questions[:MAX_INPUTS]:
        paragraph = question.get("type") == "paragraph"
        placeholder = question.get("placeholder")
        if question.get("type") == "choice" and question.get("choices"):
            placeholder = " / ".join(str(choice) for choice in question["choices"])
        inputs.append(
            TextInput(
                label=truncate(str(question.get("question") or question["id"]), LABEL_LIMIT),
                custom_id=str(question["id"]),
                style=discord.TextStyle.paragraph if paragraph else discord.TextStyle.short,
                placeholder=truncate(placeholder, 100) if placeholder else None,
                required=bool(question.get("required", True)),
                max_length=int(question.get("max_length") or (PARAGRAPH_LIMIT if paragraph else SHORT_LIMIT)),
            )
        )
    return inputs


class JobApplicationModal(Modal):
    def __init__(self, job_title: str, questions: List[Mapping[str, Any]], on_answers: SubmitCallback):
        super().__init__(title=truncate(f"Apply: {job_title}", LABEL_LIMIT))
        self.on_answers = on_answers
        self.inputs = build_inputs(questions)
        for text_input in self.inputs:
            self.add_item(text_input)

    def answers(self) -> Dict[str, str]:
        return {text_input.custom_id: (text_input.value or "").strip() for text_input in self.inputs}

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await self.on_answers(interaction, self.answers())

    async def on_error(self, interaction: discord.Interaction, error: Exception) -> None:
        logger.error(f"Error in JobApplicationModal: {error}", exc_info=error)
        embed = EmbedFactory.error("Application Failed", "Your application could not be submitted.")
        if interaction.response.is_done():
            await interaction.followup.send(embed=embed, ephemeral=True)
        else:
            await interaction.response.send_message(embed=embed, ephemeral=True)
