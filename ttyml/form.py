"""
Form model: hidden variables and visible prompts collected while parsing.

Variables and prompts keep document order; the submission body lists all
variables first, then every prompt's accepted value.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .config import ASCII_WHITESPACE, DEFAULT_METHOD, INVALID_INPUT_TEMPLATE
from .error_handler import MalformedDocumentError
from .url_utils import encode_form

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Variable:
    """Hidden field from a <var name=... value=...> element."""

    name: str
    value: str


@dataclass
class Prompt:
    """
    Visible field from a <prompt> element.

    The label is rendered character data from inside the element, including
    any escape sequences produced by nested <style> elements.
    """

    name: str
    filter_regex_source: str = ""
    filter_message: str = ""
    label_parts: List[str] = field(default_factory=list)
    filter_regex: Optional[re.Pattern[str]] = field(default=None, init=False)

    def __post_init__(self) -> None:
        if self.filter_regex_source:
            try:
                self.filter_regex = re.compile(self.filter_regex_source)
            except re.error as e:
                raise MalformedDocumentError(
                    f"invalid filter-regex for prompt '{self.name}': {e}"
                ) from e

    @property
    def label(self) -> str:
        return "".join(self.label_parts)

    def accepts(self, value: str) -> bool:
        """An absent filter accepts everything; otherwise the whole value must match."""
        if self.filter_regex is None:
            return True
        return self.filter_regex.fullmatch(value) is not None

    def rejection_message(self) -> str:
        if self.filter_message:
            return self.filter_message
        return INVALID_INPUT_TEMPLATE.format(regex=self.filter_regex_source)


@dataclass
class Form:
    """Form state of one document: target, method and fields."""

    action: str
    method: str = DEFAULT_METHOD
    variables: List[Variable] = field(default_factory=list)
    prompts: List[Prompt] = field(default_factory=list)

    def variable_pairs(self) -> List[Tuple[str, str]]:
        return [(v.name, v.value) for v in self.variables]

    def encode_variables(self) -> str:
        return encode_form(self.variable_pairs())


def clean_input(value: str) -> str:
    """Strip surrounding ASCII whitespace from a line of user input."""
    return value.strip(ASCII_WHITESPACE)
