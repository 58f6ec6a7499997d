"""
Prompt assembly for transform calls.

Providers share one prompt layout: a system prompt with length guidance and
reference-material hints, and a user prompt carrying the instructions, the
optional content/style references and the text to transform.
"""

from backend.rewrite.models import RewriteHistory, TransformRequest

SYSTEM_PROMPT = "You are a helpful assistant that transforms text according to user instructions."

LENGTHEN_GUIDANCE = (
    " IMPORTANT: Unless explicitly requested otherwise, your rewrite MUST be longer "
    "than the original text. Add more examples, explanations, or details to make "
    "the content more comprehensive."
)

CONCISE_GUIDANCE = " Be precise and concise as requested."

CONTENT_SOURCE_GUIDANCE = (
    " Use the provided content source as reference material to enhance your "
    "response. Do not copy it directly."
)

STYLE_SOURCE_GUIDANCE = " Analyze and emulate the writing style from the provided style reference."

# Instructions containing any of these ask for shorter output
SHORTER_KEYWORDS = ("shorter", "summarize", "reduce", "condense", "brief")

PARTIAL_DOCUMENT_NOTE = "\nNote: This is part of a larger document, maintain consistency with previous chunks."


def requests_shorter_output(instructions: str) -> bool:
    lowered = instructions.lower()
    return any(keyword in lowered for keyword in SHORTER_KEYWORDS)


def build_system_prompt(request: TransformRequest) -> str:
    """Build the system prompt for a transform request."""
    prompt = SYSTEM_PROMPT

    if requests_shorter_output(request.instructions):
        prompt += CONCISE_GUIDANCE
    else:
        prompt += LENGTHEN_GUIDANCE

    if request.use_content_source and request.content_source:
        prompt += CONTENT_SOURCE_GUIDANCE
    if request.use_style_source and request.style_source:
        prompt += STYLE_SOURCE_GUIDANCE

    return prompt


def build_instructions(request: TransformRequest) -> str:
    """Instructions with chunk position context for partial documents."""
    if not request.is_partial:
        return request.instructions

    position = f"[Processing chunk {request.chunk_index + 1} of {request.total_chunks}]\n"
    return position + request.instructions + PARTIAL_DOCUMENT_NOTE


def build_user_prompt(request: TransformRequest) -> str:
    """
    Build the user prompt with reference material and the text to transform.

    Args:
        request: TransformRequest with text and options

    Returns:
        Formatted prompt string
    """
    sections = [f"Instructions: {build_instructions(request)}"]

    if request.use_content_source and request.content_source:
        sections.append(
            "Use this content as reference material (do not copy it, use it to "
            f"enhance your response):\n{request.content_source}"
        )

    if request.use_style_source and request.style_source:
        sections.append(
            f"Style reference (analyze and emulate this writing style):\n{request.style_source}"
        )

    sections.append(f"Text to transform:\n{request.text}")
    return "\n\n".join(sections)


def build_expand_instructions(instructions: str) -> str:
    """Instructions for growing a chunk while keeping what it already says."""
    return (
        "Expand the text below. Keep all of the existing content and add new "
        "material to it: further explanation, examples, and detail that fit "
        "naturally with what is already there. Return the complete expanded text.\n\n"
        f"Additional guidance: {instructions}"
    )


def build_append_instructions(instructions: str, count: int) -> str:
    """Instructions for writing new sections that continue a document."""
    noun = "section" if count == 1 else "sections"
    return (
        f"Write {count} new {noun} that continue the document below. "
        "Do not repeat or rewrite the existing text; return only the new "
        f"{noun}, separated by blank lines.\n\n"
        f"Additional guidance: {instructions}"
    )


def build_refinement_instructions(history: RewriteHistory, refinement: str) -> str:
    """
    Instructions for refining the previous rewrite.

    The model sees the original text, the instructions that produced the
    current rewrite, and the user's feedback; the text to transform is the
    current rewrite itself.
    """
    return (
        "The text below is a rewrite that did not fully meet the user's "
        "expectations. Revise it according to the refinement instructions.\n\n"
        f"Original text:\n{history.original_text}\n\n"
        f"Previous instructions:\n{history.previous_instructions}\n\n"
        f"Refinement instructions:\n{refinement}"
    )
