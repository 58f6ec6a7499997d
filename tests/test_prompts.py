"""Tests for prompt assembly."""

from backend.rewrite.models import RewriteHistory, TransformRequest
from backend.rewrite.prompts import (
    CONCISE_GUIDANCE,
    LENGTHEN_GUIDANCE,
    PARTIAL_DOCUMENT_NOTE,
    build_append_instructions,
    build_instructions,
    build_refinement_instructions,
    build_system_prompt,
    build_user_prompt,
    requests_shorter_output,
)


def test_shorter_keywords_detected():
    assert requests_shorter_output("Please SUMMARIZE this")
    assert requests_shorter_output("make it brief")
    assert not requests_shorter_output("make it formal")


def test_system_prompt_asks_for_longer_output_by_default():
    prompt = build_system_prompt(TransformRequest(text="t", instructions="Make it formal"))

    assert LENGTHEN_GUIDANCE in prompt
    assert CONCISE_GUIDANCE not in prompt


def test_system_prompt_concise_when_shorter_requested():
    prompt = build_system_prompt(TransformRequest(text="t", instructions="Condense it"))

    assert CONCISE_GUIDANCE in prompt
    assert LENGTHEN_GUIDANCE not in prompt


def test_reference_sections_only_when_enabled():
    request = TransformRequest(
        text="Body text.",
        instructions="Rewrite",
        content_source="Facts to use.",
        use_content_source=True,
        style_source="Style sample.",
        use_style_source=False,
    )

    prompt = build_user_prompt(request)

    assert "Facts to use." in prompt
    assert "Style sample." not in prompt
    assert prompt.startswith("Instructions: Rewrite")
    assert prompt.endswith("Text to transform:\nBody text.")


def test_chunk_position_added_for_partial_documents():
    request = TransformRequest(text="t", instructions="Rewrite", chunk_index=1, total_chunks=4)

    instructions = build_instructions(request)

    assert instructions.startswith("[Processing chunk 2 of 4]\n")
    assert instructions.endswith(PARTIAL_DOCUMENT_NOTE)


def test_single_chunk_has_no_position():
    request = TransformRequest(text="t", instructions="Rewrite", chunk_index=0, total_chunks=1)

    assert build_instructions(request) == "Rewrite"


def test_append_instructions_carry_count():
    assert "Write 1 new section " in build_append_instructions("More", 1)
    assert "Write 3 new sections " in build_append_instructions("More", 3)


def test_refinement_instructions_include_history():
    history = RewriteHistory(
        original_text="The original.",
        previous_instructions="Make it formal",
        current_rewrite="The formal version.",
    )

    instructions = build_refinement_instructions(history, "Less stiff")

    assert "The original." in instructions
    assert "Make it formal" in instructions
    assert "Less stiff" in instructions
