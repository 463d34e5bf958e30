"""Reshape the raw text of a civil ruling into six labelled sections.

The normalised text is walked once, top to bottom, by a :class:`ScanCursor`.
Each window finds the landmark that ends it, consumes its lines and builds a
:class:`Section`:

1. header      (case number, date, subject)     ends at the first party marker
2. parties     (``【role】 name`` lines)         ends before ``上列``
3. synopsis    (procedural summary)             ends with ``本院...：``
4. holding     (``【主文】`` and ``- `` items)    ends before ``理由``
5. reasoning   (``【理由】`` body)                ends with ``裁定如主文。``
6. signatures  (``【...法官】 name`` lines)       the remainder

Line-by-line reshaping is done by ordered :class:`LineRule` sets, the first
matching rule wins.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from . import text_rules
from .error_codes import ReformatError
from .models import Section, SectionKind, StructuredDocument

Lines = Sequence[str]


@dataclass(frozen=True)
class Landmarks:
    party_markers: Tuple[str, ...] = ("聲請人", "抗告人", "再抗告人")
    joint_marker: str = "上列"
    synopsis_pattern: str = r"本院.+："
    holding_marker: str = "主文"
    reasoning_marker: str = "理由"
    body_end: str = "裁定如主文。"
    judge_marker: str = "法官"
    # The rest of the closing line and the ruling-date line.
    signature_skip_lines: int = 2


DEFAULT_LANDMARKS = Landmarks()


class ScanCursor:
    """Forward-only position over the normalised lines of one ruling."""

    def __init__(self, lines: Lines) -> None:
        self._lines: List[str] = list(lines)
        self.position = 0

    @property
    def remaining(self) -> int:
        return len(self._lines) - self.position

    def line(self, index: int) -> str:
        return self._lines[index]

    def skip_blank(self) -> None:
        while self.position < len(self._lines) and not self._lines[self.position]:
            self.position += 1

    def find(self, predicate: Callable[[str], bool]) -> Optional[int]:
        for index in range(self.position, len(self._lines)):
            if predicate(self._lines[index]):
                return index
        return None

    def split(self, index: int, column: int) -> None:
        """Break line ``index`` in two at ``column``."""

        line = self._lines[index]
        self._lines[index : index + 1] = [line[:column], line[column:]]

    def take_until(self, index: int) -> List[str]:
        taken = self._lines[self.position : index]
        self.position = index
        return taken

    def take_through(self, index: int) -> List[str]:
        return self.take_until(index + 1)

    def drop(self, count: int) -> None:
        self.position = min(len(self._lines), self.position + count)

    def take_rest(self) -> List[str]:
        return self.take_until(len(self._lines))


@dataclass(frozen=True)
class LineRule:
    """``matches(lines, i, out)`` decides; ``apply`` appends to ``out`` and
    returns how many input lines it consumed."""

    name: str
    matches: Callable[[Lines, int, List[str]], bool]
    apply: Callable[[Lines, int, List[str]], int]


def apply_rules(rules: Sequence[LineRule], lines: Lines) -> List[str]:
    out: List[str] = []
    index = 0
    while index < len(lines):
        for rule in rules:
            if rule.matches(lines, index, out):
                index += max(1, rule.apply(lines, index, out))
                break
        else:
            out.append(lines[index])
            index += 1
    return out


def _keep(lines: Lines, index: int, out: List[str]) -> int:
    out.append(lines[index])
    return 1


def _discard(lines: Lines, index: int, out: List[str]) -> int:
    return 1


# -- header ---------------------------------------------------------------


def _is_label_line(lines: Lines, index: int, out: List[str]) -> bool:
    line = lines[index]
    return len(line) > 1 and line.endswith("：") and index + 1 < len(lines) and bool(lines[index + 1])


def _label_value(lines: Lines, index: int, out: List[str]) -> int:
    out.append(f"【{lines[index][:-1]}】 {lines[index + 1]}")
    return 2


HEADER_RULES: Tuple[LineRule, ...] = (
    LineRule("label_value", _is_label_line, _label_value),
    LineRule("bracketed", lambda lines, i, out: "【" in lines[i], _keep),
    LineRule("drop", lambda lines, i, out: True, _discard),
)


# -- parties --------------------------------------------------------------

_ROLE_PREFIX = re.compile(r"^.{2,8}人")
_ROLE_DETAIL = re.compile(r"(.{2,8}人)(.{2,50})")


def _split_roles(line: str) -> List[str]:
    return _ROLE_DETAIL.sub("【\\1】 \\2\n", line).rstrip("\n").split("\n")


def _is_joint_role(lines: Lines, index: int, out: List[str]) -> bool:
    return (
        lines[index].endswith("共同")
        and index + 1 < len(lines)
        and bool(_ROLE_PREFIX.match(lines[index + 1]))
    )


def _joint_role(lines: Lines, index: int, out: List[str]) -> int:
    out.extend(_split_roles(lines[index] + lines[index + 1]))
    return 2


def _role_detail(lines: Lines, index: int, out: List[str]) -> int:
    out.extend(_split_roles(lines[index]))
    return 1


def _is_continuation(lines: Lines, index: int, out: List[str]) -> bool:
    return "【" not in lines[index] and bool(out) and "【" in out[-1]


def _continuation(lines: Lines, index: int, out: List[str]) -> int:
    out[-1] = f"{out[-1]} {lines[index]}"
    return 1


PARTY_RULES: Tuple[LineRule, ...] = (
    LineRule("joint_role", _is_joint_role, _joint_role),
    LineRule("role_detail", lambda lines, i, out: bool(_ROLE_DETAIL.search(lines[i])), _role_detail),
    LineRule("continuation", _is_continuation, _continuation),
)


def _holding_item(lines: Lines, index: int, out: List[str]) -> int:
    out.append(f"- {lines[index]}")
    return 1


def _text_lines(text: str) -> List[str]:
    return text.rstrip("\n").split("\n")


class ReformatEngine:
    """Pure ``raw text -> StructuredDocument`` transform."""

    def __init__(self, landmarks: Landmarks = DEFAULT_LANDMARKS) -> None:
        self.landmarks = landmarks
        self._synopsis_end = re.compile(landmarks.synopsis_pattern)
        self._judge = re.compile(rf"^(.*)({re.escape(landmarks.judge_marker)})(.+)$")
        self._windows = (
            (SectionKind.HEADER, self._header),
            (SectionKind.PARTIES, self._parties),
            (SectionKind.SYNOPSIS, self._synopsis),
            (SectionKind.HOLDING, self._holding),
            (SectionKind.REASONING, self._reasoning),
            (SectionKind.SIGNATURES, self._signatures),
        )

    def reformat(self, raw_text: str) -> StructuredDocument:
        cursor = ScanCursor(text_rules.normalize(raw_text).split("\n"))
        sections = []
        for kind, window in self._windows:
            if kind not in (SectionKind.HEADER, SectionKind.SIGNATURES):
                cursor.skip_blank()
            lines = window(cursor)
            if not any(lines):
                raise ReformatError(f"{kind.value} section is empty", section=kind.value)
            sections.append(Section(kind, tuple(lines)))
        return StructuredDocument(tuple(sections))

    def _missing(self, kind: SectionKind, landmark: str) -> ReformatError:
        return ReformatError(
            f"landmark {landmark!r} not found for {kind.value}", section=kind.value
        )

    def _header(self, cursor: ScanCursor) -> List[str]:
        found: Optional[Tuple[int, int]] = None
        for index in range(cursor.position, cursor.position + cursor.remaining):
            line = cursor.line(index)
            # A marker at the very start of the text does not end the header.
            start = 1 if index == cursor.position else 0
            columns = [
                column
                for column in (line.find(marker, start) for marker in self.landmarks.party_markers)
                if column >= 0
            ]
            if columns:
                found = (index, min(columns))
                break
        if found is None:
            raise self._missing(SectionKind.HEADER, "|".join(self.landmarks.party_markers))

        index, column = found
        if column > 0:
            cursor.split(index, column)
            index += 1
        return apply_rules(HEADER_RULES, cursor.take_until(index))

    def _parties(self, cursor: ScanCursor) -> List[str]:
        marker = self.landmarks.joint_marker
        index = cursor.find(lambda line: marker in line)
        if index is None:
            raise self._missing(SectionKind.PARTIES, marker)
        return apply_rules(PARTY_RULES, cursor.take_until(index))

    def _synopsis(self, cursor: ScanCursor) -> List[str]:
        index = cursor.find(lambda line: bool(self._synopsis_end.search(line)))
        if index is None:
            raise self._missing(SectionKind.SYNOPSIS, self.landmarks.synopsis_pattern)
        text = "\n".join(cursor.take_through(index))
        text = text_rules.add_sentence_breaks(text)
        text = text_rules.add_cjk_latin_spacing(text)
        text = text_rules.merge_closures(text_rules.remove_unwanted_eol(text))
        return _text_lines(text)

    def _holding(self, cursor: ScanCursor) -> List[str]:
        marker = self.landmarks.reasoning_marker
        index = cursor.find(lambda line: marker in line)
        if index is None:
            raise self._missing(SectionKind.HOLDING, marker)
        lines = cursor.take_until(index)

        title = self.landmarks.holding_marker
        heading = next((i for i, line in enumerate(lines) if title in line), None)
        if heading is None:
            raise self._missing(SectionKind.HOLDING, title)
        rules = (
            LineRule("title", lambda lines, i, out: i == heading, self._holding_title),
            LineRule("item", lambda lines, i, out: i > heading, _holding_item),
        )
        return apply_rules(rules, lines)

    def _holding_title(self, lines: Lines, index: int, out: List[str]) -> int:
        title = self.landmarks.holding_marker
        out.append(lines[index].replace(title, f"【{title}】", 1))
        return 1

    def _reasoning(self, cursor: ScanCursor) -> List[str]:
        phrase = self.landmarks.body_end
        index = cursor.find(lambda line: phrase in line)
        if index is None:
            raise self._missing(SectionKind.REASONING, phrase)
        cursor.split(index, cursor.line(index).index(phrase) + len(phrase))

        text = "\n".join(cursor.take_through(index))
        text = text_rules.merge_closures(text_rules.remove_unwanted_eol(text))
        text = text_rules.add_cjk_latin_spacing(text)
        text = text_rules.add_sentence_breaks(text)
        marker = self.landmarks.reasoning_marker
        text = text.replace(marker, f"【{marker}】\n", 1)
        return _text_lines(text)

    def _signatures(self, cursor: ScanCursor) -> List[str]:
        cursor.drop(self.landmarks.signature_skip_lines)
        rules = (
            LineRule("judge", lambda lines, i, out: bool(self._judge.match(lines[i])), self._judge_line),
        )
        lines = apply_rules(rules, cursor.take_rest())
        return [text_rules.add_cjk_latin_spacing(line) for line in lines]

    def _judge_line(self, lines: Lines, index: int, out: List[str]) -> int:
        out.append(self._judge.sub("【\\1\\2】 \\3", lines[index]))
        return 1


_DEFAULT_ENGINE = ReformatEngine()


def reformat(raw_text: str) -> StructuredDocument:
    return _DEFAULT_ENGINE.reformat(raw_text)


__all__ = [
    "Landmarks",
    "DEFAULT_LANDMARKS",
    "ScanCursor",
    "LineRule",
    "apply_rules",
    "HEADER_RULES",
    "PARTY_RULES",
    "ReformatEngine",
    "reformat",
]
