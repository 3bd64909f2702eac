"""Turn markdown article content into blocks the reader can lay out."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Tuple

import marko
from marko import block, inline

_SRC_RE = re.compile(r"""src\s*=\s*["']([^"']+)["']""", re.IGNORECASE)

_parser = marko.Markdown()


@dataclass
class Span:
    text: str
    styles: Tuple[str, ...] = ()
    href: Optional[str] = None


@dataclass
class Block:
    kind: str
    spans: List[Span] = field(default_factory=list)
    level: int = 0
    language: str = ""
    marker: str = ""
    depth: int = 0
    quoted: bool = False

    @property
    def text(self) -> str:
        return "".join(span.text for span in self.spans)


def _inline_spans(
    children: Any, styles: Tuple[str, ...] = (), href: Optional[str] = None
) -> List[Span]:
    if isinstance(children, str):
        return [Span(children, styles, href)]

    spans: List[Span] = []
    for child in children or []:
        if isinstance(child, str):
            spans.append(Span(child, styles, href))
        elif isinstance(child, inline.LineBreak):
            spans.append(Span(" " if child.soft else "\n", styles, href))
        elif isinstance(child, inline.CodeSpan):
            spans.append(Span(str(child.children), styles + ("code",), href))
        elif isinstance(child, inline.StrongEmphasis):
            spans.extend(_inline_spans(child.children, styles + ("bold",), href))
        elif isinstance(child, inline.Emphasis):
            spans.extend(_inline_spans(child.children, styles + ("italic",), href))
        elif isinstance(child, inline.Image):
            alt = "".join(span.text for span in _inline_spans(child.children))
            spans.append(Span(alt, ("image",), child.dest))
        elif isinstance(child, (inline.Link, inline.AutoLink)):
            spans.extend(_inline_spans(child.children, styles + ("link",), child.dest))
        elif isinstance(child, inline.InlineHTML):
            continue
        elif isinstance(child, (inline.RawText, inline.Literal)):
            spans.append(Span(str(child.children), styles, href))
        else:
            spans.extend(_inline_spans(getattr(child, "children", None), styles, href))
    return spans


def _code_text(element: Any) -> str:
    parts = []
    for child in element.children or []:
        parts.append(child if isinstance(child, str) else str(getattr(child, "children", "")))
    return "".join(parts).rstrip("\n")


def _walk(elements: Iterable[Any], out: List[Block], *, quoted: bool, depth: int) -> None:
    for element in elements:
        if isinstance(element, (block.Heading, block.SetextHeading)):
            out.append(
                Block("heading", _inline_spans(element.children), level=element.level, quoted=quoted)
            )
        elif isinstance(element, block.Paragraph):
            out.append(
                Block("paragraph", _inline_spans(element.children), depth=depth, quoted=quoted)
            )
        elif isinstance(element, (block.FencedCode, block.CodeBlock)):
            out.append(
                Block(
                    "code",
                    [Span(_code_text(element), ("code",))],
                    language=getattr(element, "lang", "") or "",
                    depth=depth,
                )
            )
        elif isinstance(element, block.ThematicBreak):
            out.append(Block("rule"))
        elif isinstance(element, block.Quote):
            _walk(element.children, out, quoted=True, depth=depth)
        elif isinstance(element, block.List):
            start = element.start if element.ordered else 0
            for index, item in enumerate(element.children):
                marker = f"{start + index}." if element.ordered else "•"
                nested: List[Block] = []
                _walk(item.children, nested, quoted=quoted, depth=depth + 1)
                if nested and nested[0].kind == "paragraph":
                    nested[0].marker = marker
                else:
                    nested.insert(0, Block("paragraph", depth=depth + 1, marker=marker, quoted=quoted))
                out.extend(nested)
        elif isinstance(element, block.HTMLBlock):
            match = _SRC_RE.search(getattr(element, "body", "") or "")
            if match:
                src = match.group(1)
                out.append(Block("embed", [Span(src, ("link",), src)], quoted=quoted))


def render_markdown(text: str) -> List[Block]:
    """Parse ``text`` as markdown and flatten it into display blocks."""
    document = _parser.parse(text or "")
    blocks: List[Block] = []
    _walk(document.children, blocks, quoted=False, depth=0)
    return blocks


def image_urls(blocks: Iterable[Block]) -> List[str]:
    urls = []
    for item in blocks:
        for span in item.spans:
            if "image" in span.styles and span.href and span.href not in urls:
                urls.append(span.href)
    return urls
