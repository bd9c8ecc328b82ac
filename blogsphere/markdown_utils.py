import html
import logging
import re
from xml.etree.ElementTree import Element

import markdown
from markdown import util
from markdown.extensions import Extension
from markdown.postprocessors import Postprocessor
from markdown.treeprocessors import Treeprocessor

logger = logging.getLogger(__name__)

CODE_BLOCK_RE = re.compile(r"<pre>(<code[^>]*>.*?</code>)</pre>", re.DOTALL)
COPY_BUTTON = '<button class="copy-btn" type="button" onclick="copyCode(this)">Copy</button>'

URL_ATTRIBUTES = ("href", "src")
SAFE_SCHEMES = {"http", "https", "mailto"}
# Browsers ignore whitespace and control characters inside a URL scheme
URL_NOISE_RE = re.compile(r"[\x00-\x20\x7f]+")
SCHEME_RE = re.compile(r"^([a-z][a-z0-9+.\-]*):")


def is_safe_url(url: str) -> bool:
    """Relative URLs and http(s)/mailto links only"""
    # Automatic mailto links arrive entity-encoded behind a placeholder ampersand
    decoded = html.unescape((url or "").replace(util.AMP_SUBSTITUTE, "&"))
    normalized = URL_NOISE_RE.sub("", decoded).lower()
    match = SCHEME_RE.match(normalized)
    return match is None or match.group(1) in SAFE_SCHEMES


class SanitizeProcessor(Treeprocessor):
    def run(self, root):
        """Drop event-handler attributes and neutralize unsafe link targets."""
        for element in root.iter():
            for name in list(element.attrib):
                if name.lower().startswith("on"):
                    del element.attrib[name]
                elif name.lower() in URL_ATTRIBUTES and not is_safe_url(element.attrib[name]):
                    logger.debug("Replaced unsafe %s on <%s>", name, element.tag)
                    element.attrib[name] = "#"


class TableFigureProcessor(Treeprocessor):
    def run(self, root):
        """Wrap <table> elements inside <figure> for better styling."""
        parents = {child: parent for parent in root.iter() for child in parent}
        for table in list(root.iter("table")):
            parent = parents.get(table)
            if parent is None:
                continue
            index = list(parent).index(table)
            parent.remove(table)
            figure = Element("figure")
            figure.append(table)
            parent.insert(index, figure)


class CodeBlockPostprocessor(Postprocessor):
    def run(self, text):
        """Wrap <pre><code> blocks with <div> and add a copy button.

        Runs on the final HTML because fenced blocks only reach the output
        once the raw-html stash is restored.
        """
        text, count = CODE_BLOCK_RE.subn(
            lambda match: f'<div class="code-container">{COPY_BUTTON}<pre>{match.group(1)}</pre></div>',
            text,
        )
        if count:
            logger.debug("Wrapped %d code block(s)", count)
        return text


class PostContentExtension(Extension):
    def extendMarkdown(self, md):
        # Raw HTML typed by authors is rendered as text, never as markup
        md.preprocessors.deregister("html_block", strict=False)
        md.inlinePatterns.deregister("html", strict=False)
        md.treeprocessors.register(TableFigureProcessor(md), "table_figure", 15)
        # After "inline" (20) so links and images exist
        md.treeprocessors.register(SanitizeProcessor(md), "sanitize", 12)
        md.postprocessors.register(CodeBlockPostprocessor(md), "code_block", 5)


def convert_markdown(md_text: str) -> str:
    """Convert post Markdown to HTML with custom processing.

    "extra" is spelled out without attr_list and md_in_html: both let
    authors put arbitrary attributes or markup into the page.
    """
    extensions = [
        "abbr",
        "def_list",
        "tables",
        "fenced_code",
        "footnotes",
        "admonition",
        "sane_lists",
        PostContentExtension(),
    ]
    return markdown.markdown(md_text or "", extensions=extensions)
