#!/usr/bin/env -S uv run --script
# /// script
# requires-python = ">=3.10"
# dependencies = []
# ///
"""Manopts - command-line options straight from usage text.

Instead of declaring options one by one, the caller hands over the usage text
it already prints (manual page style) and the option table is derived from it:

    -a, --all           show all elements, no argument
    -d --delta=NUM      set delta, argument required
    -e --epsilon[=NUM]  argument optional
    -f FILE
        a short option followed by a single word takes an argument;
        the explanation then has to go on its own line
    lines whose first word does not start with '-' are ignored

`argv` is then scanned getopt_long style against that table and every option
occurrence is recorded as a raw string, converted on demand.

Configuration model:
- Settings live in `~/.config/manopts/config.json`.
- `MANOPTS_HOME` environment variable overrides the location.
- Any key can be overridden with `MANOPTS_<KEY>` (e.g. `MANOPTS_VERBOSE=2`).

Usage:
    manopts check usage.txt                       # Report usage text problems
    manopts table usage.txt --json                # Show the derived option table
    manopts parse usage.txt -- -a --delta 5 file  # Parse arguments against it
    manopts usage usage.txt                       # Echo the usage text
"""

from __future__ import annotations

import argparse
import json
import os
import re
import sys
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Final, Iterable, Iterator, Mapping, Protocol, Sequence, TextIO, TypeVar

# Starting the short option string with a colon makes the scanner report a
# missing argument as its own condition instead of an unknown option.
SHORT_SPEC_SENTINEL: Final[str] = ":"

# Repeated values of one option are joined with this separator in `text`.
VALUE_SEPARATOR: Final[str] = "\n"

T = TypeVar("T")


def manopts_home() -> Path:
    """Return Manopts' home directory.

    Defaults to `~/.config/manopts`, overridable via `MANOPTS_HOME`.
    """
    raw = os.environ.get("MANOPTS_HOME")
    if raw:
        return Path(raw).expanduser()
    return Path.home() / ".config" / "manopts"


def manopts_config_path() -> Path:
    return manopts_home() / "config.json"


def _load_config() -> dict:
    path = manopts_config_path()
    try:
        payload = json.loads(path.read_text())
    except (OSError, ValueError):
        # Missing, unreadable or malformed config all mean "no settings".
        return {}
    if isinstance(payload, dict):
        return payload
    return {}


def _config_get(*, key: str) -> object | None:
    # Environment variables override config.json.
    # Example: `MANOPTS_VERBOSE=2`, `MANOPTS_PERMUTE=1`.
    env_key = f"MANOPTS_{key.upper()}"
    env_val = os.environ.get(env_key)
    if env_val is not None and env_val.strip() != "":
        return env_val
    return _load_config().get(key)


def _config_flag(*, key: str, default: bool) -> bool:
    raw = _config_get(key=key)
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int):
        return raw > 0
    if isinstance(raw, str):
        value = raw.strip().lower()
        if value in {"0", "false", "no", "off"}:
            return False
        if value in {"1", "true", "yes", "on"}:
            return True
    return default


def _verbose_level() -> int:
    raw = _config_get(key="verbose")
    if raw is None:
        return 0
    if isinstance(raw, bool):
        return 1 if raw else 0
    if isinstance(raw, int):
        if raw <= 0:
            return 0
        return 2 if raw > 1 else 1
    if isinstance(raw, str):
        value = raw.strip().lower()
        if value in {"", "0", "false", "no", "off"}:
            return 0
        if value in {"1", "true", "yes", "on", "basic"}:
            return 1
        return 2
    return 0


class ArgumentArity(IntEnum):
    """Whether an option takes an argument, numbered like getopt's has_arg."""

    NONE = 0
    REQUIRED = 1
    OPTIONAL = 2


# Suffix appended after a short option letter in the short option string.
_ARITY_SUFFIX: Final[dict[ArgumentArity, str]] = {
    ArgumentArity.NONE: "",
    ArgumentArity.REQUIRED: ":",
    ArgumentArity.OPTIONAL: "::",
}


class WordKind(Enum):
    SHORT = "short"
    LONG = "long"
    PROSE = "prose"
    PROSE_LINE = "prose_line"
    INVALID = "invalid"


@dataclass(frozen=True, slots=True)
class UsageWord:
    """One classified word of a usage line."""

    kind: WordKind
    name: str = ""  # option letter for SHORT, option name for LONG
    arity: ArgumentArity = ArgumentArity.NONE


def _classify_long_word(word: str) -> UsageWord:
    pos = word.find("=")
    if pos == -1:
        return UsageWord(kind=WordKind.LONG, name=word[2:])
    if word[pos - 1] == "[":
        # --name[=ARG]
        if not word.endswith("]"):
            return UsageWord(kind=WordKind.INVALID)
        return UsageWord(
            kind=WordKind.LONG, name=word[2 : pos - 1], arity=ArgumentArity.OPTIONAL
        )
    return UsageWord(kind=WordKind.LONG, name=word[2:pos], arity=ArgumentArity.REQUIRED)


def classify_usage_word(
    *, word: str, position: int, short_seen: bool = False
) -> UsageWord:
    """Classify a whitespace-separated word found at 1-based `position`.

    A first word without a leading dash marks the whole line as prose
    (PROSE_LINE); later such words are explanation text (PROSE). A short
    option is `-x` or `-x,`, and only one is allowed per line.
    """
    if len(word) <= 1:
        return UsageWord(kind=WordKind.INVALID)

    if word[0] != "-":
        if position == 1:
            return UsageWord(kind=WordKind.PROSE_LINE)
        return UsageWord(kind=WordKind.PROSE)

    if word[1] == "-":
        return _classify_long_word(word)

    if (
        short_seen
        or (len(word) == 3 and word[2] != ",")
        or len(word) > 3
    ):
        return UsageWord(kind=WordKind.INVALID)

    return UsageWord(kind=WordKind.SHORT, name=word[1])


class InvalidUsageLine(ValueError):
    """A usage line that starts like an option definition but is malformed."""

    def __init__(self, *, index: int, line: str) -> None:
        super().__init__(f"invalid option at line: {index}\n{line}")
        self.index = index
        self.line = line


@dataclass(frozen=True, slots=True)
class UsageLine:
    """Option definition extracted from one usage line."""

    short: str | None
    long: str | None
    arity: ArgumentArity


def parse_usage_line(*, line: str, index: int = 0) -> UsageLine | None:
    """Extract the option defined by one usage line.

    Returns None for lines that define nothing (blank lines, prose) and
    raises InvalidUsageLine for malformed definitions. `index` is the 0-based
    line number used in the error.

    Without a long option the arity is guessed from the word count:

        -f FILE             argument required (nothing follows FILE)
        -f remove a file    no argument (FILE would be followed by prose)
    """
    short: str | None = None
    long_name = ""
    arity = ArgumentArity.NONE

    n = 0  # number of words encountered
    for word in line.split():
        n += 1
        if n > 2:
            # Only the first two words matter; the count is kept for the
            # short-option arity guess below.
            break

        token = classify_usage_word(
            word=word, position=n, short_seen=short is not None
        )
        if token.kind is WordKind.INVALID:
            raise InvalidUsageLine(index=index, line=line)
        if token.kind is WordKind.PROSE_LINE:
            return None
        if token.kind is WordKind.PROSE:
            continue
        if token.kind is WordKind.LONG:
            long_name = token.name
            arity = token.arity
        else:
            short = token.name

    if n == 0:
        return None

    if short is None and not long_name:
        raise InvalidUsageLine(index=index, line=line)

    if not long_name:
        arity = ArgumentArity.REQUIRED if n == 2 else ArgumentArity.NONE

    return UsageLine(short=short, long=long_name or None, arity=arity)


@dataclass(frozen=True, slots=True)
class LongOption:
    """A getopt_long descriptor: name, arity and the short letter it pairs with."""

    name: str
    arity: ArgumentArity
    short: str | None = None


@dataclass(frozen=True, slots=True)
class OptionEntry:
    """One distinct option and the aliases registered for it."""

    identity: int
    short: str | None
    long: str | None
    arity: ArgumentArity

    @property
    def aliases(self) -> tuple[str, ...]:
        return tuple(alias for alias in (self.short, self.long) if alias)

    @property
    def preferred_alias(self) -> str:
        return self.long or self.short or ""


def _empty_index() -> Mapping[str, int]:
    return MappingProxyType({})


@dataclass(frozen=True, slots=True)
class OptionTable:
    """Option table derived from usage text.

    `index` maps every alias, short letters and long names alike, to its
    option identity. Both kinds share one namespace, so `-a` and `--a`
    cannot both be defined.
    """

    usage: str = ""
    short_spec: str = SHORT_SPEC_SENTINEL
    long_options: tuple[LongOption, ...] = ()
    index: Mapping[str, int] = field(default_factory=_empty_index)
    entries: tuple[OptionEntry, ...] = ()
    diagnostics: tuple[str, ...] = ()

    def good(self) -> bool:
        return not self.diagnostics

    def identity_of(self, alias: str) -> int | None:
        return self.index.get(alias)

    def entry(self, identity: int) -> OptionEntry | None:
        for entry in self.entries:
            if entry.identity == identity:
                return entry
        return None

    def to_dict(self) -> dict:
        return {
            "short_spec": self.short_spec,
            "long_options": [
                {"name": opt.name, "arity": opt.arity.name.lower(), "short": opt.short}
                for opt in self.long_options
            ],
            "options": [
                {
                    "identity": entry.identity,
                    "short": entry.short,
                    "long": entry.long,
                    "arity": entry.arity.name.lower(),
                }
                for entry in self.entries
            ],
            "diagnostics": list(self.diagnostics),
        }


def build_option_table(*, usage: str) -> OptionTable:
    """Derive the option table from usage text.

    Malformed lines and duplicate aliases are recorded as diagnostics and
    the remaining lines are still processed. A line whose aliases all
    collide with earlier ones does not get an identity of its own.
    """
    verbosity = _verbose_level()

    short_spec = SHORT_SPEC_SENTINEL
    long_options: list[LongOption] = []
    index: dict[str, int] = {}
    entries: list[OptionEntry] = []
    diagnostics: list[str] = []
    next_identity = 0

    for line_no, line in enumerate(usage.split("\n")):
        try:
            parsed = parse_usage_line(line=line, index=line_no)
        except InvalidUsageLine as e:
            diagnostics.append(str(e))
            continue
        if parsed is None:
            continue

        if verbosity > 1:
            print(
                f"[manopts] line {line_no}: short={parsed.short or '-'} "
                f"long={parsed.long or '-'} arity={parsed.arity.name.lower()}",
                file=sys.stderr,
            )

        short: str | None = None
        long_name: str | None = None

        if parsed.short is not None:
            short_spec += parsed.short + _ARITY_SUFFIX[parsed.arity]
            if parsed.short in index:
                diagnostics.append(f"duplicate short option: {parsed.short}")
            else:
                index[parsed.short] = next_identity
                short = parsed.short

        if parsed.long is not None:
            long_options.append(
                LongOption(name=parsed.long, arity=parsed.arity, short=parsed.short)
            )
            if parsed.long in index:
                diagnostics.append(f"duplicate long option: {parsed.long}")
            else:
                index[parsed.long] = next_identity
                long_name = parsed.long

        if short is not None or long_name is not None:
            entries.append(
                OptionEntry(
                    identity=next_identity,
                    short=short,
                    long=long_name,
                    arity=parsed.arity,
                )
            )
            next_identity += 1

    if verbosity:
        print(
            f"[manopts] option table: {len(entries)} options, "
            f"{len(diagnostics)} diagnostics",
            file=sys.stderr,
        )

    return OptionTable(
        usage=usage,
        short_spec=short_spec,
        long_options=tuple(long_options),
        index=MappingProxyType(index),
        entries=tuple(entries),
        diagnostics=tuple(diagnostics),
    )


class ConversionError(ValueError):
    pass


_CONVERTERS: Final[dict[type, Callable[[str], object]]] = {
    int: int,
    float: float,
    str: str,
}

# Leading whitespace is allowed, trailing text of any kind is not.
_NUMBER_PATTERNS: Final[dict[type, re.Pattern[str]]] = {
    int: re.compile(r"\s*[+-]?[0-9]+"),
    float: re.compile(
        r"\s*[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|infinity|nan)",
        re.IGNORECASE,
    ),
}


def convert_text(*, text: str, kind: type[T]) -> T:
    """Convert raw option text to `kind` (int, float or str).

    Raises ConversionError when the whole text is not a valid `kind`.
    """
    converter = _CONVERTERS.get(kind)
    if converter is None:
        raise TypeError(f"Unsupported conversion target: {kind.__name__}")
    pattern = _NUMBER_PATTERNS.get(kind)
    if pattern is not None and pattern.fullmatch(text) is None:
        raise ConversionError(f"Cannot convert {text!r} to {kind.__name__}")
    try:
        return converter(text)  # type: ignore[return-value]
    except ValueError as e:
        raise ConversionError(f"Cannot convert {text!r} to {kind.__name__}") from e


class OptionValue:
    """Raw strings recorded for one option, in the order they were seen.

    An option given three times (`-v -v -v`) holds three values, so `count`
    doubles as a repetition counter.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Iterable[str] = ()) -> None:
        self._values: list[str] = list(values)

    def add(self, text: str) -> None:
        self._values.append(text)

    @property
    def count(self) -> int:
        return len(self._values)

    @property
    def values(self) -> tuple[str, ...]:
        return tuple(self._values)

    @property
    def text(self) -> str:
        return VALUE_SEPARATOR.join(self._values)

    def __bool__(self) -> bool:
        return bool(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f"OptionValue({self._values!r})"

    def as_type(self, kind: type[T] = str) -> T:  # type: ignore[assignment]
        """Interpret all stored text as one `kind` value."""
        if not self._values:
            raise ConversionError("null value")
        return convert_text(text=self.text, kind=kind)

    def as_list(self, kind: type[T] = str) -> list[T]:  # type: ignore[assignment]
        """Interpret every stored value as a `kind` value."""
        if not self._values:
            raise ConversionError("null value")
        return [convert_text(text=value, kind=kind) for value in self._values]

    def value_or(self, default: object, kind: type | None = None) -> object:
        """Return the value as `kind`, or `default` if absent or unconvertible.

        `kind` defaults to the type of `default` (str for None). A `kind`
        that cannot be converted to (e.g. bool) also yields `default`.
        """
        if not self._values:
            return default
        if kind is None:
            kind = str if default is None else type(default)
        try:
            return self.as_type(kind)
        except (ConversionError, TypeError):
            return default


class UnknownOptionError(KeyError):
    """Lookup of an alias the usage text never defined."""

    def __init__(self, alias: str) -> None:
        super().__init__(f"unknown option: {alias}")
        self.alias = alias


class ScanSignal(Enum):
    END = "end"
    LONG = "long"
    SHORT = "short"
    UNKNOWN = "?"
    MISSING_ARGUMENT = ":"


@dataclass(frozen=True, slots=True)
class ScanEvent:
    """What the scanner found at the current position."""

    signal: ScanSignal
    option: str = ""  # letter, long name, or "--name" for unknown long tokens
    long_index: int | None = None
    argument: str | None = None


@dataclass(slots=True)
class ScanCursor:
    """Scan position within one argv list.

    `offset` is the position inside a clustered short token such as `-abc`
    and 0 between tokens. `skipped` holds the non-option tokens passed over
    when permuting.
    """

    index: int = 1
    offset: int = 0
    skipped: list[str] = field(default_factory=list)
    finished: bool = False


class TokenScanner(Protocol):
    def next_event(self) -> ScanEvent: ...

    def remaining(self) -> list[str]: ...


def parse_short_spec(spec: str) -> tuple[dict[str, ArgumentArity], bool]:
    """Parse a getopt short option string.

    Returns the arity per letter (`x` none, `x:` required, `x::` optional)
    and whether the string starts with the missing-argument sentinel.
    """
    report_missing = spec.startswith(SHORT_SPEC_SENTINEL)
    body = spec[1:] if report_missing else spec

    arities: dict[str, ArgumentArity] = {}
    i = 0
    while i < len(body):
        letter = body[i]
        i += 1
        colons = 0
        while i < len(body) and body[i] == ":" and colons < 2:
            colons += 1
            i += 1
        if letter == ":":
            continue
        # First definition wins, as with getopt's lookup.
        arities.setdefault(letter, ArgumentArity(colons))
    return arities, report_missing


class OptionScanner:
    """getopt_long style scanner over one argv list.

    Handles clustered short options (`-abc`), attached and separate
    arguments (`-fFILE`, `-f FILE`, `--delta=5`, `--delta 5`), optional
    arguments only when attached, unambiguous long prefixes (`--del`) and
    the `--` terminator. argv[0] is the program name and is never scanned.

    Scanning stops at the first non-option token unless `permute` is set,
    in which case non-options are set aside and scanning continues.

    All mutable state lives in `cursor`, so scanners never affect each other.
    """

    def __init__(
        self,
        *,
        argv: Sequence[str],
        short_spec: str,
        long_options: Sequence[LongOption],
        permute: bool = False,
        cursor: ScanCursor | None = None,
    ) -> None:
        self._argv = list(argv)
        self._short, self._report_missing = parse_short_spec(short_spec)
        self._long = tuple(long_options)
        self._permute = permute
        self.cursor = cursor if cursor is not None else ScanCursor()

    def next_event(self) -> ScanEvent:
        cursor = self.cursor
        if cursor.finished:
            return ScanEvent(signal=ScanSignal.END)
        if cursor.offset:
            return self._next_short()

        while cursor.index < len(self._argv):
            token = self._argv[cursor.index]
            if token == "--":
                cursor.index += 1
                cursor.finished = True
                return ScanEvent(signal=ScanSignal.END)
            if token == "-" or not token.startswith("-"):
                if not self._permute:
                    cursor.finished = True
                    return ScanEvent(signal=ScanSignal.END)
                cursor.skipped.append(token)
                cursor.index += 1
                continue
            if token.startswith("--"):
                return self._next_long(token[2:])
            cursor.offset = 1
            return self._next_short()

        cursor.finished = True
        return ScanEvent(signal=ScanSignal.END)

    def remaining(self) -> list[str]:
        return [*self.cursor.skipped, *self._argv[self.cursor.index :]]

    def _advance(self) -> None:
        self.cursor.index += 1
        self.cursor.offset = 0

    def _missing(self, option: str) -> ScanEvent:
        signal = (
            ScanSignal.MISSING_ARGUMENT if self._report_missing else ScanSignal.UNKNOWN
        )
        return ScanEvent(signal=signal, option=option)

    def _match_long(self, name: str) -> int | None:
        for position, option in enumerate(self._long):
            if option.name == name:
                return position
        if not name:
            return None
        candidates = [
            position
            for position, option in enumerate(self._long)
            if option.name.startswith(name)
        ]
        if len({self._long[position].name for position in candidates}) != 1:
            # Unknown, or an ambiguous abbreviation.
            return None
        return candidates[0]

    def _next_long(self, body: str) -> ScanEvent:
        cursor = self.cursor
        name, has_value, value = body.partition("=")
        cursor.index += 1

        position = self._match_long(name)
        if position is None:
            return ScanEvent(signal=ScanSignal.UNKNOWN, option=f"--{name}")

        option = self._long[position]
        label = option.short or f"--{option.name}"

        if has_value:
            if option.arity is ArgumentArity.NONE:
                return ScanEvent(signal=ScanSignal.UNKNOWN, option=label)
            return ScanEvent(
                signal=ScanSignal.LONG,
                option=option.name,
                long_index=position,
                argument=value,
            )

        if option.arity is ArgumentArity.REQUIRED:
            if cursor.index >= len(self._argv):
                return self._missing(label)
            argument = self._argv[cursor.index]
            cursor.index += 1
            return ScanEvent(
                signal=ScanSignal.LONG,
                option=option.name,
                long_index=position,
                argument=argument,
            )

        return ScanEvent(signal=ScanSignal.LONG, option=option.name, long_index=position)

    def _next_short(self) -> ScanEvent:
        cursor = self.cursor
        token = self._argv[cursor.index]
        letter = token[cursor.offset]
        cursor.offset += 1
        attached = token[cursor.offset :]
        if not attached:
            self._advance()

        arity = self._short.get(letter)
        if arity is None:
            return ScanEvent(signal=ScanSignal.UNKNOWN, option=letter)
        if arity is ArgumentArity.NONE:
            return ScanEvent(signal=ScanSignal.SHORT, option=letter)

        if attached:
            # -fFILE: the rest of the token is the argument.
            self._advance()
            return ScanEvent(signal=ScanSignal.SHORT, option=letter, argument=attached)
        if arity is ArgumentArity.OPTIONAL:
            return ScanEvent(signal=ScanSignal.SHORT, option=letter)

        if cursor.index >= len(self._argv):
            return self._missing(letter)
        argument = self._argv[cursor.index]
        cursor.index += 1
        return ScanEvent(signal=ScanSignal.SHORT, option=letter, argument=argument)


ScannerFactory = Callable[..., TokenScanner]


@dataclass(slots=True)
class ParseResult:
    """Outcome of one dispatch: values per identity, positionals, diagnostics.

    `diagnostics` starts with the table's own diagnostics, so `good()`
    answers for the usage text and the arguments together.
    """

    table: OptionTable
    values: dict[int, OptionValue] = field(default_factory=dict)
    arguments: OptionValue = field(default_factory=OptionValue)
    diagnostics: list[str] = field(default_factory=list)

    def good(self) -> bool:
        return not self.diagnostics

    @property
    def error_text(self) -> str:
        return "\n".join(self.diagnostics)

    def __getitem__(self, alias: str) -> OptionValue:
        identity = self.table.identity_of(alias)
        if identity is None:
            raise UnknownOptionError(alias)
        return self.values.get(identity) or OptionValue()

    def __contains__(self, alias: object) -> bool:
        if not isinstance(alias, str):
            return False
        identity = self.table.identity_of(alias)
        return identity is not None and identity in self.values

    def to_dict(self) -> dict:
        options: dict[str, list[str]] = {}
        for identity, value in self.values.items():
            entry = self.table.entry(identity)
            key = entry.preferred_alias if entry is not None else str(identity)
            options[key] = list(value.values)
        return {
            "options": options,
            "arguments": list(self.arguments.values),
            "diagnostics": list(self.diagnostics),
            "good": self.good(),
        }


def dispatch(
    *,
    table: OptionTable,
    argv: Sequence[str],
    permute: bool = False,
    scanner_factory: ScannerFactory = OptionScanner,
) -> ParseResult:
    """Match argv against the option table.

    Unknown options and missing arguments are recorded and scanning goes on.
    A short option the scanner accepts but the table cannot resolve stops
    the scan; whatever is left becomes positional arguments.
    """
    verbosity = _verbose_level()
    result = ParseResult(table=table, diagnostics=list(table.diagnostics))
    scanner = scanner_factory(
        argv=argv,
        short_spec=table.short_spec,
        long_options=table.long_options,
        permute=permute,
    )

    while True:
        event = scanner.next_event()
        if verbosity > 1:
            print(
                f"[manopts] scan: {event.signal.name.lower()} "
                f"{event.option or '-'} {event.argument!r}",
                file=sys.stderr,
            )

        if event.signal is ScanSignal.END:
            break
        if event.signal is ScanSignal.UNKNOWN:
            result.diagnostics.append(f"Unknown option: {event.option}")
            continue
        if event.signal is ScanSignal.MISSING_ARGUMENT:
            result.diagnostics.append(f"Missing argument for: {event.option}")
            continue

        if event.signal is ScanSignal.LONG:
            name = event.option
            if event.long_index is not None:
                name = table.long_options[event.long_index].name
            identity = table.identity_of(name)
            if identity is None:
                result.diagnostics.append(f"Unknown option: --{name}")
                continue
        else:
            identity = table.identity_of(event.option)
            if identity is None:
                result.diagnostics.append(f"unknown short option: {event.option}")
                break

        value = result.values.setdefault(identity, OptionValue())
        value.add(event.argument if event.argument is not None else "")

    for token in scanner.remaining():
        result.arguments.add(token)

    if verbosity:
        print(
            f"[manopts] parsed {sum(v.count for v in result.values.values())} "
            f"option occurrences, {result.arguments.count} arguments, "
            f"{len(result.diagnostics)} diagnostics",
            file=sys.stderr,
        )

    return result


def write_debug_report(
    *, table: OptionTable, result: ParseResult | None, stream: TextIO
) -> None:
    """Write how the usage text (and the last parse) was understood."""
    stream.write("\n")
    stream.write(f"short option string: {table.short_spec}\n\n")

    stream.write("long options\n")
    for opt in table.long_options:
        stream.write(f"{opt.name}\t{int(opt.arity)}\t{opt.short or ''}\n")
    stream.write("\n")

    if result is not None and result.values:
        stream.write("options\n")
        for identity, value in result.values.items():
            entry = table.entry(identity)
            aliases = " ".join(entry.aliases) if entry is not None else str(identity)
            stream.write(f"{aliases} {value.text}\n")
        stream.write("\n")

    if result is not None and result.arguments:
        stream.write("arguments\n")
        stream.write(f"{result.arguments.text}\n\n")

    diagnostics = result.diagnostics if result is not None else table.diagnostics
    if diagnostics:
        stream.write("error: " + "\n".join(diagnostics) + "\n")


class UsageOptions:
    """Options defined by usage text, parsed from argv.

        options = UsageOptions(USAGE)
        options.parse(sys.argv)
        if not options.good():
            options.report_error()
        level = options["verbose"].count
        delta = options["delta"].value_or(1.0)
    """

    def __init__(self, usage: str = "", *, permute: bool = False) -> None:
        self.permute = permute
        self._table = build_option_table(usage=usage)
        self._result: ParseResult | None = None

    def load(self, usage: str) -> UsageOptions:
        self._table = build_option_table(usage=usage)
        self._result = None
        return self

    def __lshift__(self, usage: str) -> UsageOptions:
        return self.load(usage)

    @property
    def table(self) -> OptionTable:
        return self._table

    @property
    def result(self) -> ParseResult | None:
        return self._result

    def parse(self, argv: Sequence[str]) -> ParseResult:
        self._result = dispatch(table=self._table, argv=argv, permute=self.permute)
        return self._result

    @property
    def diagnostics(self) -> tuple[str, ...]:
        if self._result is not None:
            return tuple(self._result.diagnostics)
        return self._table.diagnostics

    def good(self) -> bool:
        return not self.diagnostics

    @property
    def error_text(self) -> str:
        return "\n".join(self.diagnostics)

    def __getitem__(self, alias: str) -> OptionValue:
        if self._result is not None:
            return self._result[alias]
        if self._table.identity_of(alias) is None:
            raise UnknownOptionError(alias)
        return OptionValue()

    @property
    def arguments(self) -> OptionValue:
        if self._result is None:
            return OptionValue()
        return self._result.arguments

    def usage(self, stream: TextIO | None = None) -> None:
        out = stream if stream is not None else sys.stdout
        out.write(self._table.usage + "\n")

    def report_error(self, stream: TextIO | None = None) -> None:
        if self.good():
            return
        out = stream if stream is not None else sys.stderr
        out.write(self.error_text + "\n")

    def debug_report(self, stream: TextIO | None = None) -> None:
        out = stream if stream is not None else sys.stdout
        write_debug_report(table=self._table, result=self._result, stream=out)


def _read_usage(path: str) -> str | None:
    if path == "-":
        return sys.stdin.read()
    try:
        return Path(path).expanduser().read_text(encoding="utf-8")
    except (FileNotFoundError, IsADirectoryError):
        print(f"Usage file not found: {path}", file=sys.stderr)
        return None
    except (OSError, UnicodeDecodeError) as e:
        print(f"Cannot read usage file {path}: {e}", file=sys.stderr)
        return None


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Command-line options derived from usage text",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log to stderr (-vv for per-line and per-token detail)",
    )

    subparsers = parser.add_subparsers(dest="action")

    # check command
    check_p = subparsers.add_parser("check", help="Report problems in usage text")
    check_p.add_argument("usage", help="Usage text file ('-' for stdin)")

    # table command
    table_p = subparsers.add_parser("table", help="Show the derived option table")
    table_p.add_argument("usage", help="Usage text file ('-' for stdin)")
    table_p.add_argument("--json", action="store_true", help="Print as JSON")

    # parse command
    parse_p = subparsers.add_parser(
        "parse", help="Parse arguments against usage text (put them after --)"
    )
    parse_p.add_argument("usage", help="Usage text file ('-' for stdin)")
    parse_p.add_argument("args", nargs="*", help="Arguments to parse")
    parse_p.add_argument("--prog", default="prog", help="Program name for argv[0]")
    parse_p.add_argument(
        "--permute",
        action="store_true",
        default=None,
        help="Keep scanning for options after positional arguments",
    )

    # usage command
    usage_p = subparsers.add_parser("usage", help="Print the usage text")
    usage_p.add_argument("usage", help="Usage text file ('-' for stdin)")

    args = parser.parse_args(argv)

    # -v wins over config.json and the environment for this run.
    if args.verbose:
        os.environ["MANOPTS_VERBOSE"] = str(min(args.verbose, 2))

    if args.action is None:
        parser.print_usage(sys.stderr)
        return 2

    usage = _read_usage(args.usage)
    if usage is None:
        return 2

    if args.action == "check":
        table = build_option_table(usage=usage)
        if not table.good():
            for diagnostic in table.diagnostics:
                print(diagnostic, file=sys.stderr)
            return 1
        print(f"{len(table.entries)} options")
        return 0

    elif args.action == "table":
        table = build_option_table(usage=usage)
        if args.json:
            print(json.dumps(table.to_dict(), indent=2))
        else:
            write_debug_report(table=table, result=None, stream=sys.stdout)
        return 0 if table.good() else 1

    elif args.action == "parse":
        permute = args.permute
        if permute is None:
            permute = _config_flag(key="permute", default=False)
        options = UsageOptions(usage, permute=permute)
        result = options.parse([args.prog, *args.args])
        print(json.dumps(result.to_dict(), indent=2))
        return 0 if result.good() else 1

    elif args.action == "usage":
        UsageOptions(usage).usage()
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
