# src/scanlens/prompts.py
from __future__ import annotations

from .models import TaskKind

EXTRACT_TEMPLATE = (
    "Extract key details from the following scanned report text (part {part} of {total}). "
    "Focus on people mentioned, names, dates, locations, times, observations and significant "
    "events. Provide a concise, bullet-point list:\n\n{chunk}"
)

SUMMARIZE_TEMPLATE = (
    "Provide a brief summary of the following report text and a conclusion on how impactful "
    "it may or may not be (part {part} of {total}) in 2-3 sentences:\n\n{chunk}"
)

RECONSTRUCT_TEMPLATE = """Task: Accurately transcribe, spell correct, and format the following text from a scanned document into a well-structured article format using Markdown syntax for headers and paragraphs.

Instructions:
1. Preserve ALL dates, locations, technical terms, and acronyms exactly as they appear.
2. Correct misspelled names of people, using the established spelling for well-known figures.
3. Maintain ALL CAPS text where it appears in the original.
4. Correct obvious OCR errors but keep intentional abbreviations or jargon.
5. For unclear text, use [UNCLEAR: best guess].
6. For illegible text, use [ILLEGIBLE].
7. For handwritten notes, use [HANDWRITTEN: transcription].
8. For form fields: If blank, use [BLANK]. If filled, use [FIELD: content].
9. Improve readability with proper punctuation and grammar where necessary.
10. Use Markdown headers (# for main sections, ## for subsections, ### for sub-subsections) to structure the content.
11. Ensure each header is on its own line, preceded by a blank line.
12. Create paragraphs by grouping related sentences together. Only start a new paragraph when there is a significant change in topic or focus.
13. Use "-" for all list items, regardless of nesting level or original format.
14. Do not add extra line breaks within paragraphs unless absolutely necessary for readability.
15. Do not add any explanations or summaries.
16. Ensure proper spacing around headers and between paragraphs.

Provide the transcribed, formatted, and structured text, aiming for 100% accuracy in reproducing the original content while enhancing readability and structure.

Text to reconstruct (part {part} of {total}):

{chunk}"""

_TEMPLATES = {
    TaskKind.EXTRACT: EXTRACT_TEMPLATE,
    TaskKind.SUMMARIZE: SUMMARIZE_TEMPLATE,
    TaskKind.RECONSTRUCT: RECONSTRUCT_TEMPLATE,
}


def build_prompt(task: TaskKind, chunk: str, chunk_index: int, total_chunks: int) -> str:
    """Fill the task's template; chunk_index is zero-based, the prompt says 'part i+1 of N'."""
    try:
        template = _TEMPLATES[TaskKind(task)]
    except ValueError as e:
        raise ValueError(f"Unknown task, {task!r}") from e
    return template.format(part=chunk_index + 1, total=total_chunks, chunk=chunk)
