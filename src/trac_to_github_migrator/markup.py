"""Trac wiki markup to GitHub Markdown translation.

Translation runs in five phases over the whole text:

1. ``{{{``/``}}}`` code blocks on their own lines (optionally quoted) are found
   with a small line state machine and replaced by placeholders.
2. Inline ``{{{code}}}`` spans become backtick spans, also behind placeholders.
3. Remaining multi-line ``{{{ ... }}}`` regions become fenced blocks.
4. Links, ticket references, mentions, images, emphasis and headings are
   rewritten in the unprotected text. A rewrite that would drop or copy a
   placeholder is not applied to that match.
5. Placeholders are replaced by their stored blocks.

Placeholders are built from two private-use code points that do not occur in the
input, so user text can never be mistaken for one.
"""

from __future__ import annotations

import itertools
import logging
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from .numbering import IdentifierMap
    from .users import UserResolver

logger: logging.Logger = logging.getLogger(__name__)

_NON_BMP = re.compile("[\U00010000-\U0010ffff]")

# Phase 1: line-level code fences
_OPEN_FENCE = re.compile(r"^(?P<prefix>[ \t]*(?:>[ \t]*)*)\{\{\{(?:#!(?P<lang>[\w+./-]+))?[ \t]*$")
_CLOSE_FENCE = re.compile(r"^[ \t]*(?:>[ \t]*)*\}\}\}[ \t]*$")
_LANG_LINE = re.compile(r"^[ \t]*#!(?P<lang>[\w+./-]+)[ \t]*$")

# Phase 4: substitutions
_LINE_BREAK = re.compile(r"\[\[br\]\]", re.IGNORECASE)
_IMAGE = re.compile(r"\[\[Image\((?P<args>[^)\n]*)\)\]\]")
_MENTION = re.compile(r"(?<![\w.@/:+-])@(?P<name>[A-Za-z][\w.-]*)")

_TARGET = r"(?:comment:\d+(?::ticket:\d+)?|comment:ticket:\d+:\d+|ticket:\d+(?:#comment:\d+)?)"
_REFERENCE = re.compile(
    rf"(?P<reply>Replying to )?\[(?P<bracketed>{_TARGET})(?:[ \t]+(?P<label>[^\]\n]+))?\]"
    rf"|(?<![\w/&#!])(?P<bare>{_TARGET})(?![\w:])"
    r"|(?<![\w/&#!])#(?P<hash>\d+)\b"
)
_TARGET_PARTS = re.compile(
    r"comment:(?P<c1>\d+)(?::ticket:(?P<t1>\d+))?"
    r"|comment:ticket:(?P<t2>\d+):(?P<c2>\d+)"
    r"|ticket:(?P<t3>\d+)(?:#comment:(?P<c3>\d+))?"
)

_SCHEMES = r"(?:https?|ftp|mailto):"
_WIKI_URL_LINK = re.compile(rf"\[\[(?P<url>{_SCHEMES}[^\s\]|]+)\s*\|\s*(?P<label>[^\]\n]+)\]\]")
_URL_LINK = re.compile(rf"(?<!!)\[(?P<url>{_SCHEMES}[^\s\[\]|]+)(?:[ \t]*[ \t|][ \t]*(?P<label>[^\[\]\n]+))?\]")

_BOLD_ITALIC = re.compile(r"'''''(?P<text>\w[\w ]{0,78}?)'''''")
_BOLD = re.compile(r"'''(?P<text>\w[\w ]{0,78}?)'''")
_ITALIC = re.compile(r"(?<!')''(?P<text>\w[\w ]{0,78}?)''(?!')")
_SLASH_ITALIC = re.compile(r"(?<![:/\w])//(?P<text>\w[\w ]{0,78}?)//(?![/\w])")
_HEADING = re.compile(r"^(?P<level>={1,6})[ \t]+(?P<text>[^=\n]*\w[^=\n]*?)[ \t]*=*[ \t]*(?:#\S*)?[ \t]*$", re.MULTILINE)


def escape_non_bmp(text: str, context: str = "text") -> str:
    """Replace characters outside the Basic Multilingual Plane with ``U+XXXXX``.

    GitHub's import mangles such characters, so they are written out as text.
    """
    escaped, count = _NON_BMP.subn(lambda m: f"U+{ord(m.group(0)):05X}", text)
    if count:
        logger.warning(f"Replaced {count} character(s) outside the Basic Multilingual Plane in {context}")
    return escaped


def _choose_sentinels(text: str) -> tuple[str, str]:
    """Pick two private-use characters that do not occur in ``text``."""
    candidates = itertools.chain(range(0xE000, 0xF8FF, 2), range(0xF0000, 0xFFFFD, 2))
    for code in candidates:
        start, end = chr(code), chr(code + 1)
        if start not in text and end not in text:
            return start, end
    msg = "No free private-use characters left for placeholders"
    raise ValueError(msg)


def _language(tag: str | None) -> str:
    """Convert a Trac processor name (``python``, ``text/x-python``) to a fence language."""
    if not tag:
        return ""
    name = tag.rsplit("/", 1)[-1]
    return name.removeprefix("x-")


class _BlockStore:
    """Protected regions of one translation, addressed by placeholder index."""

    def __init__(self, text: str) -> None:
        self.start, self.end = _choose_sentinels(text)
        self.blocks: list[str] = []
        self.pattern: re.Pattern[str] = re.compile(f"{self.start}(\\d+){self.end}")

    def protect(self, content: str) -> str:
        self.blocks.append(content)
        return f"{self.start}{len(self.blocks) - 1}{self.end}"

    def restore(self, text: str) -> str:
        restored = 0

        def replace(match: re.Match[str]) -> str:
            nonlocal restored
            restored += 1
            return self.blocks[int(match.group(1))]

        result = self.pattern.sub(replace, text)
        if restored != len(self.blocks):
            logger.warning(f"Restored {restored} of {len(self.blocks)} code blocks")
        return result


class MarkupTranslator:
    """Translates Trac wiki text into GitHub Markdown.

    Ticket references are renumbered through ``ticket_map`` (falling back to the
    original number for tickets outside the migrated set) and user names through
    ``users``. Both are only read.
    """

    ticket_map: IdentifierMap
    users: UserResolver

    def __init__(self, ticket_map: IdentifierMap, users: UserResolver) -> None:
        self.ticket_map = ticket_map
        self.users = users

    def translate(self, text: str | None) -> str:
        if not text:
            return ""

        text = text.replace("\r\n", "\n").replace("\r", "\n")
        store = _BlockStore(text)

        text = self._extract_line_blocks(text, store)
        text = self._extract_inline_code(text, store)
        text = self._extract_residual_blocks(text, store)
        text = self._substitute(text, store)
        return store.restore(text)

    # Phase 1

    def _extract_line_blocks(self, text: str, store: _BlockStore) -> str:
        lines = text.split("\n")
        output: list[str] = []
        index = 0
        while index < len(lines):
            opening = _OPEN_FENCE.match(lines[index])
            if opening:
                end = self._find_block_end(lines, index)
                if end is not None:
                    output.append(store.protect(self._render_block(lines[index + 1 : end], opening)))
                    index = end + 1
                    continue
            output.append(lines[index])
            index += 1
        return "\n".join(output)

    @staticmethod
    def _find_block_end(lines: list[str], start: int) -> int | None:
        depth = 0
        for index in range(start, len(lines)):
            if _OPEN_FENCE.match(lines[index]):
                depth += 1
            elif _CLOSE_FENCE.match(lines[index]):
                depth -= 1
                if depth == 0:
                    return index
        return None

    @staticmethod
    def _render_block(body: list[str], opening: re.Match[str]) -> str:
        prefix = opening.group("prefix")
        language = _language(opening.group("lang"))
        if not language and body:
            first = body[0].removeprefix(prefix.rstrip())
            tag = _LANG_LINE.match(first)
            if tag:
                language = _language(tag.group("lang"))
                body = body[1:]

        fence = "````" if any("```" in line for line in body) else "```"
        return "\n".join([f"{prefix}{fence}{language}", *body, f"{prefix}{fence}"])

    # Phase 2

    def _extract_inline_code(self, text: str, store: _BlockStore) -> str:
        # Permissive on purpose: prose about brace syntax can still trigger it.
        inline = re.compile(
            f"(?<!\\{{)\\{{\\{{\\{{(?!\\{{)(?P<code>(?:(?!\\{{\\{{\\{{)[^\\n{store.start}{store.end}])*?)\\}}\\}}\\}}"
        )

        def replace(match: re.Match[str]) -> str:
            code = match.group("code")
            if not code:
                return ""
            if "`" in code:
                return store.protect(f"`` {code} ``")
            return store.protect(f"`{code}`")

        return inline.sub(replace, text)

    # Phase 3

    def _extract_residual_blocks(self, text: str, store: _BlockStore) -> str:
        residual = re.compile(
            f"(?<!\\{{)\\{{\\{{\\{{(?!\\{{)(?:#!(?P<lang>[\\w+./-]+))?(?P<code>[^{store.start}{store.end}]*?)\\}}\\}}\\}}"
        )

        def replace(match: re.Match[str]) -> str:
            source = match.string
            before = "" if match.start() == 0 or source[match.start() - 1] == "\n" else "\n"
            after = "" if match.end() == len(source) or source[match.end()] == "\n" else "\n"
            block = f"```{_language(match.group('lang'))}\n{match.group('code').strip(chr(10))}\n```"
            return before + store.protect(block) + after

        return residual.sub(replace, text)

    # Phase 4

    def _substitute(self, text: str, store: _BlockStore) -> str:
        def keeping_blocks(rewrite: Callable[[re.Match[str]], str]) -> Callable[[re.Match[str]], str]:
            # A rewrite that would drop or duplicate a placeholder leaves the match as it was
            def replace(match: re.Match[str]) -> str:
                result = rewrite(match)
                if result.count(store.start) != match.group(0).count(store.start):
                    return match.group(0)
                return result

            return replace

        text = _LINE_BREAK.sub("\n", text)
        text = _IMAGE.sub(keeping_blocks(self._image), text)
        text = _MENTION.sub(keeping_blocks(self._mention), text)
        text = _REFERENCE.sub(keeping_blocks(self._reference), text)
        text = _WIKI_URL_LINK.sub(keeping_blocks(self._link), text)
        text = _URL_LINK.sub(keeping_blocks(self._link), text)
        text = _BOLD_ITALIC.sub(r"***\g<text>***", text)
        text = _BOLD.sub(r"**\g<text>**", text)
        text = _ITALIC.sub(r"*\g<text>*", text)
        text = _SLASH_ITALIC.sub(r"*\g<text>*", text)
        return _HEADING.sub(keeping_blocks(self._heading), text)

    @staticmethod
    def _heading(match: re.Match[str]) -> str:
        return f"{'#' * len(match.group('level'))} {match.group('text').strip()}"

    def _ticket_number(self, original: str) -> str:
        number = self.ticket_map.get(original)
        return str(number) if number is not None else original

    def _describe_target(self, target: str) -> str:
        parts = _TARGET_PARTS.fullmatch(target)
        if parts is None:
            return target
        comment = parts.group("c1") or parts.group("c2") or parts.group("c3")
        ticket = parts.group("t1") or parts.group("t2") or parts.group("t3")
        if comment and ticket:
            return f"comment {comment} of #{self._ticket_number(ticket)}"
        if comment:
            return f"comment {comment}"
        return f"#{self._ticket_number(ticket)}"

    def _user_text(self, name: str) -> str:
        mapped = self.users.mapping_for(name)
        return f"@{mapped}" if mapped else name

    def _reference(self, match: re.Match[str]) -> str:
        if match.group("hash"):
            return f"#{self._ticket_number(match.group('hash'))}"
        if match.group("bare"):
            return self._describe_target(match.group("bare"))

        reference = self._describe_target(match.group("bracketed"))
        label = (match.group("label") or "").strip()
        if match.group("reply"):
            if label and " " not in label:
                return f"Replying to {reference} by {self._user_text(label)}"
            return f"Replying to {reference}"
        if label:
            return f"{label} ({reference})"
        return reference

    def _mention(self, match: re.Match[str]) -> str:
        name = match.group("name")
        stripped = name.rstrip(".-")
        trailing = name[len(stripped) :]
        mapped = self.users.mapping_for(stripped)
        if mapped:
            return f"@{mapped}{trailing}"
        return f"{stripped}{trailing}"

    @staticmethod
    def _link(match: re.Match[str]) -> str:
        url = match.group("url")
        label = match.group("label")
        if label and label.strip():
            return f"[{label.strip()}]({url})"
        return f"<{url}>"

    @staticmethod
    def _image(match: re.Match[str]) -> str:
        source = match.group("args").split(",", 1)[0].strip()
        if not source:
            return match.group(0)
        source = source.removeprefix("source:")
        alt = source.rstrip("/").rsplit("/", 1)[-1]
        return f"![{alt}]({source})"
