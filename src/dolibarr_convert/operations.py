from __future__ import annotations
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence


class TextOperationKind(str, Enum):
    ADD_PREFIX = "add-prefix"
    ADD_SUFFIX = "add-suffix"
    REMOVE_PREFIX = "remove-prefix"
    REMOVE_SUFFIX = "remove-suffix"
    FIND_REPLACE = "find-replace"
    REGEX_REPLACE = "regex-replace"


@dataclass(frozen=True)
class TextOperation:
    """One bulk edit applied to references.

    `value` is the prefix, suffix, search string or regex pattern depending on
    `kind`; `replace` and `flags` only matter for the replace kinds.
    """

    kind: TextOperationKind
    value: str
    replace: str = ""
    flags: str = ""


_REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}


def compile_pattern(pattern: str, flags: str = "") -> re.Pattern:
    bits = 0
    for ch in flags:
        if ch == "g":
            continue
        if ch not in _REGEX_FLAGS:
            raise re.error(f"unsupported regex flag: {ch}")
        bits |= _REGEX_FLAGS[ch]
    return re.compile(pattern, bits)


def _js_replacement(replace: str) -> str:
    # '$1' / '$&' style groups -> Python '\g<1>' / '\g<0>'
    out = replace.replace("\\", "\\\\")
    out = re.sub(r"\$(\d+)", r"\\g<\1>", out)
    return out.replace("$&", r"\g<0>")


def apply_operation(text: str, op: TextOperation) -> str:
    kind = op.kind
    if kind is TextOperationKind.ADD_PREFIX:
        return op.value + text
    if kind is TextOperationKind.ADD_SUFFIX:
        return text + op.value
    if kind is TextOperationKind.REMOVE_PREFIX:
        return text[len(op.value):] if text.startswith(op.value) else text
    if kind is TextOperationKind.REMOVE_SUFFIX:
        if op.value and text.endswith(op.value):
            return text[: -len(op.value)]
        return text
    if kind is TextOperationKind.FIND_REPLACE:
        return text.replace(op.value, op.replace)
    if kind is TextOperationKind.REGEX_REPLACE:
        return compile_pattern(op.value, op.flags).sub(_js_replacement(op.replace), text)
    raise ValueError(f"Unknown text operation: {kind}")


def build_text_operation(
    kind: str,
    param_a: str,
    param_b: str = "",
    flags: str = "",
) -> Optional[TextOperation]:
    """Build an operation from raw user input, or None while it is incomplete.

    An empty first parameter, an unknown kind or a regex that does not compile
    all yield None; callers only run a conversion once this resolves.
    """
    try:
        k = TextOperationKind(kind)
    except ValueError:
        return None
    if not param_a:
        return None
    if k is TextOperationKind.REGEX_REPLACE:
        try:
            compile_pattern(param_a, flags)
        except re.error:
            return None
        return TextOperation(kind=k, value=param_a, replace=param_b, flags=flags)
    if k is TextOperationKind.FIND_REPLACE:
        return TextOperation(kind=k, value=param_a, replace=param_b)
    return TextOperation(kind=k, value=param_a)


@dataclass(frozen=True)
class RefModification:
    original: str
    modified: str

    @property
    def changed(self) -> bool:
        return self.original != self.modified


def apply_to_refs(refs: Sequence[str], op: TextOperation) -> List[RefModification]:
    return [RefModification(original=r, modified=apply_operation(r, op)) for r in refs]
