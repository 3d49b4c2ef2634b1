"""Streaming patcher for the project place document (``*.poly``).

The place file is XML that editors display to humans, so a DOM round trip
(parse, modify, serialize) would reformat content we never meant to touch.
Instead the document is split into raw byte-exact tokens and rewritten in a
single forward pass. Only a handful of landmarks are recognized:

- the script container: ``<Item class="ScriptService">`` directly under the
  root element (level 1);
- module nodes: ``<Item class="ModuleScript">`` directly inside a container
  (level 2);
- the module's own ``<string name="Name">`` property inside its
  ``<Properties>`` block.

Every other token is written back exactly as read. A module's tokens are
buffered from its open tag to its matching close tag, because the name that
decides keep/replace/drop only becomes known inside it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional
from xml.sax.saxutils import escape

from common.fs_utils import atomic_write
from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants, ProjectMarkers
from errors import DocumentParseError, ProjectDocumentNotFoundError

logger = logging.getLogger(__name__)

_NAME = rb"[A-Za-z_][\w:.\-]*"
_START_RE = re.compile(
    rb"<(" + _NAME + rb")((?:\s+" + _NAME + rb"\s*=\s*(?:\"[^\"]*\"|'[^']*'))*)\s*(/?)>"
)
_END_RE = re.compile(rb"</(" + _NAME + rb")\s*>")
_ATTR_RE = re.compile(rb"(" + _NAME + rb")\s*=\s*(?:\"([^\"]*)\"|'([^']*)')")

_ENTITIES = {"amp": "&", "lt": "<", "gt": ">", "quot": '"', "apos": "'"}
_REFERENCE_RE = re.compile(r"&(#[xX][0-9a-fA-F]+|#[0-9]+|amp|lt|gt|quot|apos);")
_DEFAULT_INDENT = b"\n  "


def _replace_reference(m: "re.Match[str]") -> str:
    ref = m.group(1)
    if ref[0] != "#":
        return _ENTITIES[ref]
    try:
        code = int(ref[2:], 16) if ref[1] in "xX" else int(ref[1:])
        return chr(code)
    except (ValueError, OverflowError):
        return m.group(0)


def _decode_references(text: str) -> str:
    """Decode the predefined entities and numeric character references in one pass."""
    return _REFERENCE_RE.sub(_replace_reference, text)


class TokenKind(Enum):
    """Lexical units of the document."""
    TEXT = "text"
    START = "start"
    END = "end"
    EMPTY = "empty"
    COMMENT = "comment"
    CDATA = "cdata"
    PI = "pi"
    DECL = "decl"


@dataclass
class Token:
    """One lexical unit with the exact bytes it was read from."""
    kind: TokenKind
    raw: bytes
    offset: int
    name: str = ""
    attrs: Dict[str, str] = field(default_factory=dict)

    @property
    def local_name(self) -> str:
        return self.name.rsplit(":", 1)[-1]

    @property
    def text(self) -> str:
        """Character data carried by a TEXT or CDATA token."""
        if self.kind is TokenKind.CDATA:
            return self.raw[9:-3].decode("utf-8", errors="replace")
        return _decode_references(self.raw.decode("utf-8", errors="replace"))

    def is_item(self, class_name: str) -> bool:
        return (
            self.local_name == ProjectMarkers.ITEM_TAG.value
            and self.attrs.get(ProjectMarkers.CLASS_ATTR.value) == class_name
        )

    def is_whitespace(self) -> bool:
        return self.kind is TokenKind.TEXT and not self.raw.strip()


def _parse_attrs(blob: bytes) -> Dict[str, str]:
    attrs: Dict[str, str] = {}
    for m in _ATTR_RE.finditer(blob):
        value = m.group(2) if m.group(2) is not None else m.group(3)
        attrs[m.group(1).decode("utf-8", errors="replace")] = _decode_references(
            value.decode("utf-8", errors="replace")
        )
    return attrs


def _find_close(data: bytes, marker: bytes, start: int, what: str) -> int:
    end = data.find(marker, start)
    if end == -1:
        raise DocumentParseError(f"Unterminated {what}", offset=start)
    return end + len(marker)


def tokenize(data: bytes) -> Iterator[Token]:
    """Split ``data`` into tokens whose raw bytes concatenate back to ``data``.

    Raises:
        DocumentParseError: a tag, comment or section is not terminated or
            cannot be read as markup.
    """
    pos = 0
    size = len(data)
    while pos < size:
        if data[pos] != 0x3C:  # '<'
            nxt = data.find(b"<", pos)
            if nxt == -1:
                nxt = size
            yield Token(TokenKind.TEXT, data[pos:nxt], pos)
            pos = nxt
            continue

        if data.startswith(b"<!--", pos):
            end = _find_close(data, b"-->", pos + 4, "comment")
            yield Token(TokenKind.COMMENT, data[pos:end], pos)
        elif data.startswith(b"<![CDATA[", pos):
            end = _find_close(data, b"]]>", pos + 9, "CDATA section")
            yield Token(TokenKind.CDATA, data[pos:end], pos)
        elif data.startswith(b"<?", pos):
            end = _find_close(data, b"?>", pos + 2, "processing instruction")
            yield Token(TokenKind.PI, data[pos:end], pos)
        elif data.startswith(b"<!", pos):
            gt = data.find(b">", pos)
            bracket = data.find(b"[", pos, gt if gt != -1 else size)
            if bracket != -1:
                gt = data.find(b">", _find_close(data, b"]", bracket, "declaration"))
            if gt == -1:
                raise DocumentParseError("Unterminated declaration", offset=pos)
            end = gt + 1
            yield Token(TokenKind.DECL, data[pos:end], pos)
        elif data.startswith(b"</", pos):
            m = _END_RE.match(data, pos)
            if m is None:
                raise DocumentParseError("Malformed end tag", offset=pos)
            end = m.end()
            yield Token(TokenKind.END, data[pos:end], pos, name=m.group(1).decode("utf-8"))
        else:
            m = _START_RE.match(data, pos)
            if m is None:
                raise DocumentParseError("Malformed or unterminated tag", offset=pos)
            end = m.end()
            kind = TokenKind.EMPTY if m.group(3) else TokenKind.START
            yield Token(
                kind,
                data[pos:end],
                pos,
                name=m.group(1).decode("utf-8"),
                attrs=_parse_attrs(m.group(2)),
            )
        pos = end


def build_module(name: str, source: str, indent: bytes = _DEFAULT_INDENT) -> bytes:
    """Render a fresh ModuleScript node whose own lines start at ``indent``."""
    if b"\n" not in indent:
        indent = _DEFAULT_INDENT
    inner = indent + b"  "
    prop = inner + b"  "
    m = ProjectMarkers
    return b"".join([
        f'<{m.ITEM_TAG.value} {m.CLASS_ATTR.value}="{m.MODULE_CLASS.value}">'.encode("utf-8"),
        inner, f"<{m.PROPERTIES_TAG.value}>".encode("utf-8"),
        prop, f'<{m.STRING_TAG.value} {m.NAME_ATTR.value}="{m.SOURCE_PROPERTY.value}">'.encode("utf-8"),
        escape(source).encode("utf-8"), f"</{m.STRING_TAG.value}>".encode("utf-8"),
        prop, f'<{m.STRING_TAG.value} {m.NAME_ATTR.value}="{m.NAME_PROPERTY.value}">'.encode("utf-8"),
        escape(name).encode("utf-8"), f"</{m.STRING_TAG.value}>".encode("utf-8"),
        inner, f"</{m.PROPERTIES_TAG.value}>".encode("utf-8"),
        indent, f"</{m.ITEM_TAG.value}>".encode("utf-8"),
    ])


class _Mode(Enum):
    SCAN = "scan"
    APPEND = "append"
    UPDATE = "update"
    REMOVE = "remove"


class _State(Enum):
    SCANNING = "scanning"
    CAPTURING = "capturing"


# Element levels: root element 0, container 1, module 2, Properties 3, property 4.
_CONTAINER_LEVEL = 1
_MODULE_LEVEL = 2
_PROPERTY_LEVEL = 4


class _Rewriter:
    """Single-pass rewrite over the token stream."""

    def __init__(self, mode: _Mode, target: Optional[str] = None, source: str = ""):
        self.mode = mode
        self.target = target
        self.source = source
        self.names: List[str] = []
        self.matched = 0
        self.appended = False

        self._out: List[bytes] = []
        self._stack: List[str] = []
        self._state = _State.SCANNING
        self._in_container = False
        self._pending: Optional[Token] = None
        self._child_indent: Optional[bytes] = None

        self._capture: List[Token] = []
        self._prefix: Optional[Token] = None
        self._capture_name: Optional[str] = None
        self._name_parts: Optional[List[str]] = None

    def run(self, doc: bytes) -> bytes:
        for tok in tokenize(doc):
            if self._state is _State.CAPTURING:
                self._feed_capture(tok)
            elif self._in_container and len(self._stack) == _MODULE_LEVEL:
                self._feed_container_child(tok)
            else:
                self._feed(tok)

        if self._state is _State.CAPTURING or self._stack:
            open_name = self._stack[-1] if self._stack else ProjectMarkers.ITEM_TAG.value
            raise DocumentParseError(f"Unterminated element <{open_name}>", offset=len(doc))
        return b"".join(self._out)

    # -- scanning -------------------------------------------------------

    def _feed(self, tok: Token) -> None:
        level = len(self._stack)
        if tok.kind is TokenKind.START:
            if level == _CONTAINER_LEVEL and tok.is_item(ProjectMarkers.CONTAINER_CLASS.value):
                self._in_container = True
                self._child_indent = None
            self._stack.append(tok.local_name)
        elif tok.kind is TokenKind.END:
            self._pop(tok)
        elif (
            tok.kind is TokenKind.EMPTY
            and level == _CONTAINER_LEVEL
            and tok.is_item(ProjectMarkers.CONTAINER_CLASS.value)
            and self._wants_append()
        ):
            self._expand_empty_container(tok)
            return
        self._out.append(tok.raw)

    def _feed_container_child(self, tok: Token) -> None:
        if tok.is_whitespace():
            self._flush_pending()
            self._pending = tok
            return
        if tok.kind is TokenKind.END:
            self._close_container(tok)
            return
        if tok.kind in (TokenKind.START, TokenKind.EMPTY) and self._pending is not None:
            self._child_indent = self._pending.raw
        if tok.kind is TokenKind.START and tok.is_item(ProjectMarkers.MODULE_CLASS.value):
            self._begin_capture(tok)
            return
        self._flush_pending()
        self._feed(tok)

    def _close_container(self, tok: Token) -> None:
        if self._wants_append():
            trailing = self._pending.raw if self._pending is not None else b""
            indent = self._child_indent
            if indent is None:
                indent = trailing + b"  " if b"\n" in trailing else _DEFAULT_INDENT
            self._out.append(indent)
            self._out.append(build_module(self.target or "", self.source, indent))
            self.appended = True
        self._flush_pending()
        self._pop(tok)
        self._in_container = False
        self._out.append(tok.raw)

    def _expand_empty_container(self, tok: Token) -> None:
        # Indent relative to the whitespace line the container sits on.
        before = self._out[-1] if self._out else b""
        if b"\n" in before and not before.strip():
            outer = before[before.rfind(b"\n"):]
        else:
            outer = b"\n"
        child_indent = outer + b"  "
        opener = tok.raw[: tok.raw.rfind(b"/")].rstrip() + b">"
        self._out.append(opener)
        self._out.append(child_indent)
        self._out.append(build_module(self.target or "", self.source, child_indent))
        self._out.append(outer + b"</" + tok.name.encode("utf-8") + b">")
        self.appended = True

    def _wants_append(self) -> bool:
        return self.mode is _Mode.APPEND and not self.appended

    def _flush_pending(self) -> None:
        if self._pending is not None:
            self._out.append(self._pending.raw)
            self._pending = None

    def _pop(self, tok: Token) -> None:
        if not self._stack:
            raise DocumentParseError(f"Unexpected closing tag </{tok.name}>", offset=tok.offset)
        if self._stack[-1] != tok.local_name:
            raise DocumentParseError(
                f"Mismatched closing tag </{tok.name}>, expected </{self._stack[-1]}>",
                offset=tok.offset,
            )
        self._stack.pop()

    # -- capturing ------------------------------------------------------

    def _begin_capture(self, tok: Token) -> None:
        self._state = _State.CAPTURING
        self._prefix = self._pending
        self._pending = None
        self._capture = [tok]
        self._capture_name = None
        self._name_parts = None
        self._stack.append(tok.local_name)

    def _feed_capture(self, tok: Token) -> None:
        self._capture.append(tok)
        level = len(self._stack)
        if tok.kind is TokenKind.START:
            if self._is_name_property(tok, level):
                self._name_parts = []
            self._stack.append(tok.local_name)
        elif tok.kind is TokenKind.EMPTY:
            if self._is_name_property(tok, level) and self._capture_name is None:
                self._capture_name = ""
        elif tok.kind is TokenKind.END:
            self._pop(tok)
            if self._name_parts is not None and len(self._stack) == _PROPERTY_LEVEL:
                if self._capture_name is None:
                    self._capture_name = "".join(self._name_parts)
                self._name_parts = None
            if len(self._stack) == _MODULE_LEVEL:
                self._finish_capture()
        elif tok.kind in (TokenKind.TEXT, TokenKind.CDATA):
            if self._name_parts is not None and level == _PROPERTY_LEVEL + 1:
                self._name_parts.append(tok.text)

    def _is_name_property(self, tok: Token, level: int) -> bool:
        return (
            level == _PROPERTY_LEVEL
            and self._stack[-1] == ProjectMarkers.PROPERTIES_TAG.value
            and tok.local_name == ProjectMarkers.STRING_TAG.value
            and tok.attrs.get(ProjectMarkers.NAME_ATTR.value) == ProjectMarkers.NAME_PROPERTY.value
        )

    def _finish_capture(self) -> None:
        name = self._capture_name
        if name is not None:
            self.names.append(name)
        is_target = self.target is not None and name == self.target

        prefix = self._prefix.raw if self._prefix is not None else b""
        if is_target and self.mode is _Mode.UPDATE:
            self.matched += 1
            indent = prefix if b"\n" in prefix else (self._child_indent or _DEFAULT_INDENT)
            self._out.append(prefix)
            self._out.append(build_module(name, self.source, indent))
        elif is_target and self.mode is _Mode.REMOVE:
            # The indentation in front of a removed node goes with it.
            self.matched += 1
        else:
            self._out.append(prefix)
            self._out.extend(t.raw for t in self._capture)

        self._state = _State.SCANNING
        self._capture = []
        self._prefix = None


def module_names(doc: bytes) -> List[str]:
    """Names of all module nodes found in script containers, in document order."""
    rewriter = _Rewriter(_Mode.SCAN)
    rewriter.run(doc)
    return rewriter.names


def update(doc: bytes, module_name: str, source_text: str) -> bytes:
    """Replace the module named ``module_name`` with a freshly built node.

    Other modules are re-emitted from their captured bytes. When no module
    carries the name the document is returned unchanged.
    """
    rewriter = _Rewriter(_Mode.UPDATE, module_name, source_text)
    patched = rewriter.run(doc)
    if not rewriter.matched:
        logger.debug("No module named %s to update", module_name)
    return patched


def inject(doc: bytes, module_name: str, source_text: str) -> bytes:
    """Update ``module_name`` if present, otherwise append it to the container."""
    if module_name in module_names(doc):
        return update(doc, module_name, source_text)
    rewriter = _Rewriter(_Mode.APPEND, module_name, source_text)
    patched = rewriter.run(doc)
    if not rewriter.appended:
        logger.warning(
            "No %s container found; %s was not added",
            ProjectMarkers.CONTAINER_CLASS.value,
            module_name,
        )
    return patched


def remove(doc: bytes, module_name: str) -> bytes:
    """Delete the module named ``module_name``; unknown names are a no-op."""
    rewriter = _Rewriter(_Mode.REMOVE, module_name)
    patched = rewriter.run(doc)
    if not rewriter.matched:
        return doc
    return patched


class ProjectFile:
    """The project's place document on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._content: Optional[bytes] = None

    @classmethod
    def locate(cls, directory: Path) -> "ProjectFile":
        """Return the first ``*.poly`` file in ``directory`` by name.

        Raises:
            ProjectDocumentNotFoundError: the directory has none.
        """
        directory = Path(directory)
        candidates = sorted(
            p for p in directory.glob(f"*{Constants.PROJECT_FILE_SUFFIX}") if p.is_file()
        )
        if not candidates:
            raise ProjectDocumentNotFoundError(str(directory), Constants.PROJECT_FILE_SUFFIX)
        logger.debug("Found project file: %s", candidates[0])
        return cls(candidates[0])

    def read(self) -> bytes:
        if self._content is None:
            self._content = self.path.read_bytes()
        return self._content

    def modules(self) -> List[str]:
        return module_names(self.read())

    def inject(self, module_name: str, source_text: str) -> None:
        """Inject or update a module and write the document immediately."""
        self._write(inject(self.read(), module_name, source_text))
        if is_debug_enabled(logger):
            logger.debug(
                "Injected module",
                extra=extra_context(
                    event="document_write",
                    component="document",
                    action="inject",
                    target=str(self.path),
                    package=module_name,
                ),
            )

    def remove(self, module_name: str) -> bool:
        """Remove a module. Returns False when it was not present."""
        original = self.read()
        patched = remove(original, module_name)
        if patched == original:
            return False
        self._write(patched)
        return True

    def _write(self, content: bytes) -> None:
        if content == self._content:
            return
        atomic_write(self.path, content)
        self._content = content
