"""
Instruction text sent to the model for each writing style.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from .exceptions import ValidationError


class WritingStyle(str, Enum):
    GRAMMAR = "grammar"
    FORMAL = "formal"
    INFORMAL = "informal"
    COLLABORATIVE = "collaborative"
    CONCISE = "concise"


MARKDOWN_CLAUSE = (
    "Preserve ALL markdown formatting (bold, italic, headings, lists, links, "
    "blockquotes, inline code, fenced code blocks)."
)
CODE_CLAUSE = "NEVER alter text inside inline `code` or fenced ```code blocks```."
NO_TRANSLATION_CLAUSE = "Do not translate the text; always keep the original language of the input."

BASE_SYSTEM_PROMPT = "\n".join([
    "You are a writing assistant. Fix ALL spelling mistakes, grammar errors, punctuation issues, and typos.",
    "",
    "Rules:",
    '1. Correct repeated letters (e.g., "Hellllooo" -> "Hello").',
    '2. Fix misspelled words (e.g., "Thhis" -> "This").',
    "3. Correct improper capitalization.",
    f"4. {MARKDOWN_CLAUSE}",
    f"5. {CODE_CLAUSE}",
    f"6. {NO_TRANSLATION_CLAUSE}",
    "7. Be thorough and aggressive with corrections, but do not change meaning.",
    "8. Output ONLY the corrected text with markdown formatting intact. Do not explain or add anything else.",
])

CUSTOM_RULES_HEADER = "Additional Custom Rules:"

STYLE_PRESETS: Dict[WritingStyle, Dict[str, Any]] = {
    WritingStyle.GRAMMAR: {
        "label": "Grammar only",
        "description": "Fix spelling, grammar, and punctuation without changing the tone.",
        "instructions": [],
    },
    WritingStyle.FORMAL: {
        "label": "Formal",
        "description": "Polished tone suitable for business or academic writing.",
        "heading": "Additional Instructions for Formal Tone:",
        "instructions": [
            "When rewriting, use a formal and professional tone.",
            'Avoid contractions (e.g., use "do not" instead of "don\'t").',
            "Use precise and polished language appropriate for business or academic contexts.",
            "Do not add unnecessary complexity or verbosity.",
        ],
    },
    WritingStyle.INFORMAL: {
        "label": "Informal",
        "description": "Relaxed, conversational voice.",
        "heading": "Additional Instructions for Informal Tone:",
        "instructions": [
            "When rewriting, use a relaxed and conversational tone.",
            "Use contractions and natural phrasing that feels friendly and human.",
            "Avoid stiff or overly professional expressions.",
            "Keep sentences clear and approachable.",
        ],
    },
    WritingStyle.COLLABORATIVE: {
        "label": "Collaborative",
        "description": "Inclusive, friendly tone for teamwork.",
        "heading": "Additional Instructions for Collaborative Tone:",
        "instructions": [
            "When rewriting, use an inclusive and friendly tone suitable for teamwork.",
            "Favor positive and cooperative language (e.g., \"let's\", \"we can\", \"feel free to\").",
            "Maintain professionalism while sounding approachable and open.",
            "Avoid harsh or overly direct phrasing.",
        ],
    },
    WritingStyle.CONCISE: {
        "label": "Concise",
        "description": "Shorter, direct sentences with the full meaning kept.",
        "heading": "Additional Instructions for Concise Style:",
        "instructions": [
            "When rewriting, aim for clarity and brevity.",
            "Remove unnecessary words and redundancy while keeping full meaning.",
            "Prefer short, direct sentences.",
            "Maintain a natural flow without sounding robotic or abrupt.",
        ],
    },
}


def parse_style(value: Any) -> WritingStyle:
    """Coerce a style name into a :class:`WritingStyle`.

    Raises:
        ValidationError: If the value names no supported style.
    """
    if isinstance(value, WritingStyle):
        return value
    candidate = str(value).strip().lower() if value is not None else ""
    try:
        return WritingStyle(candidate)
    except ValueError:
        valid = ", ".join(style.value for style in WritingStyle)
        raise ValidationError(f"Invalid writing style '{value}'. Must be one of: {valid}") from None


def get_style_options() -> List[Dict[str, str]]:
    """Expose style presets for settings screens and the CLI."""
    return [
        {
            "key": style.value,
            "label": preset["label"],
            "description": preset["description"],
        }
        for style, preset in STYLE_PRESETS.items()
    ]


def _style_block(style: WritingStyle) -> str:
    preset = STYLE_PRESETS[style]
    if not preset["instructions"]:
        return BASE_SYSTEM_PROMPT
    lines = [preset["heading"]] + [f"- {line}" for line in preset["instructions"]]
    return f"{BASE_SYSTEM_PROMPT}\n\n" + "\n".join(lines)


def build_instructions(
    style: WritingStyle = WritingStyle.GRAMMAR,
    custom_rules: Optional[str] = None,
) -> str:
    """Compose the system instructions for one correction.

    Custom rules, when present and not blank, are appended verbatim under
    their own header.
    """
    prompt = _style_block(parse_style(style))
    if custom_rules and custom_rules.strip():
        return f"{prompt}\n\n{CUSTOM_RULES_HEADER}\n{custom_rules}"
    return prompt
