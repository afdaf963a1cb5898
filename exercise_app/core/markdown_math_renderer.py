"""Markdown + LaTeX rendering of question prompts for the student view.

The server renders prompts and option labels to HTML fragments and leaves the
math to MathJax on the client, so exercises keep their plain-text source and
are not tied to a particular math engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt

from exercise_app.core.models import Question, question_type_name

_EMPTY_PROMPT_HTML = "<p><em>No content provided.</em></p>"


@dataclass(slots=True)
class MarkdownMathRenderer:
    """Converts markdown-with-math into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str) -> str:
        sanitized = markdown_text.strip()
        if not sanitized:
            return _EMPTY_PROMPT_HTML
        return self._markdown.render(sanitized)

    def render_inline(self, markdown_text: str) -> str:
        """Render a single option label without the wrapping paragraph."""
        return self._markdown.renderInline(markdown_text.strip())

    def render_question(self, question: Question) -> dict[str, object]:
        """Student-facing view of a question; answer keys are never included."""
        options = getattr(question, "options", None)
        return {
            "type": question_type_name(question),
            "prompt_html": self.render_fragment(question.prompt),
            "options": [self.render_inline(option) for option in options] if options else None,
            "points": question.points,
        }


renderer = MarkdownMathRenderer()
# MarkdownIt is safe for concurrent read-only renders, so the API shares this instance.
