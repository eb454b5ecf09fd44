"""
Event-driven TTYML document parser.

Provides:
- Element: the closed set of element kinds
- SessionParser: SAX content handler that keeps the element stack and the
  writer stack, renders <line> elements, and fills in the Form model
- DocumentFeed: incremental, hardened XML producer (defusedxml) that decodes
  body bytes in the response charset and drives a SessionParser

Nesting rules, checked when an element starts:

    ttyml   only as the document element
    line    only directly inside ttyml
    form    only directly inside ttyml, first occurrence only
    prompt  only directly inside form
    style   anywhere a writer is active (inside line or prompt)
    var     anywhere

An element that breaks the rules, or is not in the TTYML namespace, is pushed
as UNKNOWN and ignored, so start and end events stay balanced.

DO NOT:
- Let handler exceptions escape into the XML producer - every SAX callback
  runs through the shared DeferredError slot
"""

import codecs
import logging
import sys
from enum import Enum
from typing import Callable, Dict, Final, List, Optional, TextIO, Tuple
from xml.sax import SAXParseException
from xml.sax.handler import ContentHandler, feature_namespaces
from xml.sax.xmlreader import AttributesNSImpl

import defusedxml.sax
from defusedxml import DefusedXmlException

from .config import TTYML_NAMESPACE
from .error_handler import DeferredError, MalformedDocumentError, TtymlLogicError
from .form import Form, Prompt, Variable
from .writer import PromptWriter, StdoutWriter, Writer, overlay_style, write_stdout

logger = logging.getLogger(__name__)


class Element(Enum):
    ROOT = "ttyml"
    LINE = "line"
    FORM = "form"
    PROMPT = "prompt"
    STYLE = "style"
    VAR = "var"
    UNKNOWN = "unknown"


TAG_TO_ELEMENT: Final[Dict[Tuple[Optional[str], str], Element]] = {
    (TTYML_NAMESPACE, element.value): element
    for element in Element
    if element is not Element.UNKNOWN
}

# Character data is rendered only when one of these is innermost
WRITING_ELEMENTS: Final[frozenset[Element]] = frozenset(
    {Element.LINE, Element.PROMPT, Element.STYLE}
)


class SessionParser(ContentHandler):
    """
    SAX handler holding the parse state of one document.

    Lines go to stdout as they close; prompts, variables and the form target
    accumulate in form for the session loop to use afterwards.
    """

    def __init__(
        self,
        form: Form,
        deferred: Optional[DeferredError] = None,
        stdout: Optional[TextIO] = None,
        base_url: Optional[str] = None,
    ) -> None:
        super().__init__()
        self.form = form
        self.deferred = deferred or DeferredError()
        self.base_url = base_url
        self.stack: List[Element] = []
        self.writer_stack: List[Writer] = []
        self._stdout = stdout
        self._form_seen = False

    @property
    def stdout(self) -> TextIO:
        return self._stdout if self._stdout is not None else sys.stdout

    @property
    def is_balanced(self) -> bool:
        return not self.stack and not self.writer_stack

    def _top_is(self, element: Element) -> bool:
        return bool(self.stack) and self.stack[-1] is element

    # ------------------------------------------------------------------
    # SAX callbacks
    # ------------------------------------------------------------------

    def startElementNS(
        self, name: Tuple[Optional[str], str], qname: Optional[str], attrs: AttributesNSImpl
    ) -> None:
        self.deferred.call(self._start_element, name, attrs)

    def endElementNS(self, name: Tuple[Optional[str], str], qname: Optional[str]) -> None:
        self.deferred.call(self._end_element)

    def characters(self, content: str) -> None:
        self.deferred.call(self._character_data, content)

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def _start_element(
        self, name: Tuple[Optional[str], str], attrs: AttributesNSImpl
    ) -> None:
        element = TAG_TO_ELEMENT.get(name, Element.UNKNOWN)
        if element is not Element.UNKNOWN and not _PARENT_RULES[element](self):
            logger.debug(f"Ignoring misplaced <{name[1]}> inside {self._describe_top()}")
            element = Element.UNKNOWN

        # TTYML attributes are never namespaced
        attributes = {
            local: value for (uri, local), value in attrs.items() if uri is None
        }

        self.stack.append(element)
        _START_ACTIONS[element](self, attributes)

    def _end_element(self) -> None:
        if not self.stack:
            raise TtymlLogicError("unexpected end element call")
        _END_ACTIONS[self.stack[-1]](self)
        self.stack.pop()

    def _character_data(self, content: str) -> None:
        if self.stack and self.stack[-1] in WRITING_ELEMENTS:
            self.writer_stack[-1].put(content)

    def _describe_top(self) -> str:
        return f"<{self.stack[-1].value}>" if self.stack else "document"

    # ------------------------------------------------------------------
    # Per-element actions
    # ------------------------------------------------------------------

    def _start_nothing(self, attributes: Dict[str, str]) -> None:
        pass

    def _start_form(self, attributes: Dict[str, str]) -> None:
        self._form_seen = True
        if "action" in attributes:
            self.form.action = attributes["action"]
        if "method" in attributes:
            self.form.method = attributes["method"]
        logger.debug(f"Form: {self.form.method} {self.form.action}")

    def _start_prompt(self, attributes: Dict[str, str]) -> None:
        if "name" not in attributes:
            raise MalformedDocumentError("prompt element without 'name' attribute")

        prompt = Prompt(
            name=attributes["name"],
            filter_regex_source=attributes.get("filter-regex", ""),
            filter_message=attributes.get("filter-message", ""),
        )
        self.form.prompts.append(prompt)
        self.writer_stack.append(PromptWriter(prompt.label_parts))

    def _start_line(self, attributes: Dict[str, str]) -> None:
        self.writer_stack.append(StdoutWriter(self._stdout))

    def _start_style(self, attributes: Dict[str, str]) -> None:
        writer = self.writer_stack[-1]
        writer.push_style(overlay_style(writer.current_style, attributes))

    def _start_var(self, attributes: Dict[str, str]) -> None:
        for required in ("name", "value"):
            if required not in attributes:
                raise MalformedDocumentError(
                    f"var element without '{required}' attribute"
                )
        self.form.variables.append(Variable(attributes["name"], attributes["value"]))

    def _end_nothing(self) -> None:
        pass

    def _end_line(self) -> None:
        self.writer_stack.pop()
        write_stdout(self.stdout, "\n")

    def _end_prompt(self) -> None:
        self.writer_stack.pop()

    def _end_style(self) -> None:
        self.writer_stack[-1].pop_style()


_PARENT_RULES: Final[Dict[Element, Callable[[SessionParser], bool]]] = {
    Element.ROOT: lambda p: not p.stack,
    Element.LINE: lambda p: p._top_is(Element.ROOT),
    Element.FORM: lambda p: p._top_is(Element.ROOT) and not p._form_seen,
    Element.PROMPT: lambda p: p._top_is(Element.FORM),
    Element.STYLE: lambda p: bool(p.writer_stack),
    Element.VAR: lambda p: True,
}

_START_ACTIONS: Final[Dict[Element, Callable[[SessionParser, Dict[str, str]], None]]] = {
    Element.ROOT: SessionParser._start_nothing,
    Element.LINE: SessionParser._start_line,
    Element.FORM: SessionParser._start_form,
    Element.PROMPT: SessionParser._start_prompt,
    Element.STYLE: SessionParser._start_style,
    Element.VAR: SessionParser._start_var,
    Element.UNKNOWN: SessionParser._start_nothing,
}

_END_ACTIONS: Final[Dict[Element, Callable[[SessionParser], None]]] = {
    Element.ROOT: SessionParser._end_nothing,
    Element.LINE: SessionParser._end_line,
    Element.FORM: SessionParser._end_nothing,
    Element.PROMPT: SessionParser._end_prompt,
    Element.STYLE: SessionParser._end_style,
    Element.VAR: SessionParser._end_nothing,
    Element.UNKNOWN: SessionParser._end_nothing,
}


class DocumentFeed:
    """
    Incremental XML producer for one response body.

    Bytes are decoded with the response charset and fed to a defusedxml SAX
    parser with namespace processing enabled. DTD entity declarations and
    external references are rejected.
    """

    def __init__(self, handler: SessionParser, charset: str) -> None:
        try:
            decoder_factory = codecs.getincrementaldecoder(charset)
        except LookupError as e:
            raise MalformedDocumentError(f"unsupported charset '{charset}'") from e

        self.handler = handler
        self.charset = charset
        self._decoder = decoder_factory(errors="strict")
        self._parser = defusedxml.sax.make_parser()
        self._parser.setFeature(feature_namespaces, True)
        self._parser.setContentHandler(handler)
        logger.debug(f"XML parser created (charset={charset}, base={handler.base_url})")

    def feed(self, data: bytes) -> None:
        try:
            text = self._decoder.decode(data)
        except UnicodeDecodeError as e:
            raise MalformedDocumentError(
                f"body is not valid {self.charset}: {e.reason}"
            ) from e
        if text:
            self._parse(self._parser.feed, text)

    def close(self) -> None:
        """Tell the parser that no more bytes follow."""
        try:
            text = self._decoder.decode(b"", final=True)
        except UnicodeDecodeError as e:
            raise MalformedDocumentError(
                f"body is not valid {self.charset}: {e.reason}"
            ) from e
        if text:
            self._parse(self._parser.feed, text)
        self._parse(self._parser.close)

    def _parse(self, func: Callable[..., None], *args: str) -> None:
        try:
            func(*args)
        except SAXParseException as e:
            raise MalformedDocumentError(
                f"line {e.getLineNumber()}, column {e.getColumnNumber()}: "
                f"{e.getMessage()}"
            ) from e
        except DefusedXmlException as e:
            raise MalformedDocumentError(f"forbidden XML construct: {e}") from e
