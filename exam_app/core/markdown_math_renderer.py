"""Markdown + LaTeX rendering for question prompts sent to exam clients.

Architecture note:
    Prompts are stored as markdown with inline LaTeX and rendered to HTML
    fragments on request; the exam-taking page loads MathJax and typesets the
    math client-side. Raw HTML in prompts is disabled so authored content
    cannot inject markup into the exam page.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt


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
        """Render a markdown string into an HTML fragment."""

        sanitized = markdown_text.strip() or ""
        if not sanitized:
            return "<p><em>No content provided.</em></p>"
        return self._markdown.render(sanitized)

    def render_inline(self, markdown_text: str) -> str:
        """Render a single line (e.g. an option label) without a wrapping paragraph."""

        return self._markdown.renderInline(markdown_text.strip())


# Shared by the FastAPI worker threads; renders never mutate the parser.
renderer = MarkdownMathRenderer()
