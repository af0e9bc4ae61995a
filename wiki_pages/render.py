import difflib

import markdown
from markdown.extensions import Extension
from pygments.formatters import HtmlFormatter


class EscapeHtmlExtension(Extension):
    """Treat raw HTML in page source as text, so it is escaped on output."""

    def extendMarkdown(self, md):
        md.preprocessors.deregister("html_block")
        md.inlinePatterns.deregister("html")


MARKDOWN_EXTENSIONS = [
    "fenced_code",
    "footnotes",
    "tables",
    "codehilite",
    "pymdownx.tilde",
    EscapeHtmlExtension(),
]
MARKDOWN_EXTENSION_CONFIGS = {
    "codehilite": {"css_class": "codehilite", "guess_lang": False},
    # ~~text~~ only; a single tilde stays literal
    "pymdownx.tilde": {"subscript": False},
}
PYGMENTS_STYLE = "default"

DIFF_FENCE = "````"


def render_markdown(text: str) -> str:
    """Convert markdown text to an HTML fragment."""
    return markdown.markdown(
        text,
        extensions=MARKDOWN_EXTENSIONS,
        extension_configs=MARKDOWN_EXTENSION_CONFIGS,
    )


def highlight_css() -> str:
    return HtmlFormatter(style=PYGMENTS_STYLE).get_style_defs(".codehilite")


def diff_lines(first: str, second: str) -> str:
    """
    Line diff of two texts.

    Every line of both inputs appears once, prefixed with ``-`` (only in
    ``first``), ``+`` (only in ``second``) or a space (in both). Each output
    line ends with a newline, even when the input's last line did not.
    """
    old = first.splitlines()
    new = second.splitlines()
    out = []
    matcher = difflib.SequenceMatcher(a=old, b=new, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            out.extend(f" {line}\n" for line in old[i1:i2])
            continue
        # "replace" lists the removed lines before the added ones
        out.extend(f"-{line}\n" for line in old[i1:i2])
        out.extend(f"+{line}\n" for line in new[j1:j2])
    return "".join(out)


def diff_markdown(first: str, second: str) -> str:
    """``diff_lines`` wrapped in a fenced ``diff`` code block."""
    return f"{DIFF_FENCE}diff\n{diff_lines(first, second)}{DIFF_FENCE}\n"
