"""
Instruction payload assembly.

Renders resolved tone instructions, guardrails and the source text into
a fixed template. Output depends only on the inputs: no timestamps, no
unordered iteration.
"""

from typing import List, Sequence

from .conflicts import ConflictResolution
from .guardrails import Guardrails
from .tone_vector import ToneWeight

PREAMBLE = (
    "You are an expert writing assistant specializing in tone adjustment. "
    "Your task is to rewrite the provided text according to the specified tone "
    "instructions while maintaining the original meaning and intent.\n\n"
)

GUIDELINES = (
    "REWRITING GUIDELINES:\n"
    "- Maintain the original meaning and factual content\n"
    "- Apply tone changes naturally and coherently\n"
    "- If instructions conflict, prioritize PRIMARY over SECONDARY\n"
    "- Ensure guardrails are strictly followed\n"
    "- Return only the rewritten text, no explanations\n\n"
)

STRICT_SUFFIX = (
    "\n\nIMPORTANT: Pay special attention to the guardrails above. "
    "Ensure ALL required words remain unchanged and NO banned words appear in the output."
)


def _weight_lines(weights: Sequence[ToneWeight]) -> List[str]:
    return [f"- {w.dimension}: {w.level.value}\n" for w in weights]


def _term_block(heading: str, terms: Sequence[str]) -> str:
    return heading + "\n".join(f'- "{term}"' for term in terms) + "\n\n"


def assemble(source_text: str, resolution: ConflictResolution, guardrails: Guardrails) -> str:
    """Build the instruction payload for a rewrite.

    Blocks for primary/secondary instructions and required/banned terms are
    only emitted when non-empty. Guardrail terms keep their
    spelling and are listed in case-insensitive sorted order.
    """
    parts = [PREAMBLE]

    if resolution.primary:
        parts.append("PRIMARY TONE INSTRUCTIONS (highest priority):\n")
        parts.extend(_weight_lines(resolution.primary))
        parts.append("\n")

    if resolution.secondary:
        parts.append("SECONDARY TONE ADJUSTMENTS (apply only if compatible with primary):\n")
        parts.extend(_weight_lines(resolution.secondary))
        parts.append("\n")

    if guardrails.required:
        parts.append(_term_block("REQUIRED WORDS/PHRASES (must remain unchanged):\n", guardrails.required_terms))

    if guardrails.banned:
        parts.append(_term_block("BANNED WORDS/PHRASES (must not appear in output):\n", guardrails.banned_terms))

    parts.append(GUIDELINES)
    parts.append("ORIGINAL TEXT TO REWRITE:\n")
    parts.append(f'"{source_text}"\n\n')
    parts.append("REWRITTEN TEXT:")
    return "".join(parts)


def strengthen(payload: str) -> str:
    """Payload for the single guardrail retry."""
    return payload + STRICT_SUFFIX
