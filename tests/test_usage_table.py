import pytest

import manopts  # type: ignore
from manopts import ArgumentArity, WordKind  # type: ignore


USAGE = """\
-a, --all           show all elements, no arguments required
-b, --batch  this option is separated by more than one space
-c  no long option and no argument required
-d --delta=NUM set delta number, need argument
-e --epsilon[=NUM] requires optional argument
    with or without comma ',' after short option are OK
    the lines not started with '-' will be ignored

-f FILE
    delete a file, no long option, need argument; in this case,
    explanation must be in separate line
"""


def test_classify_short_and_long_words():
    word = manopts.classify_usage_word(word="-a,", position=1)
    assert word.kind is WordKind.SHORT
    assert word.name == "a"

    word = manopts.classify_usage_word(word="--delta=NUM", position=2)
    assert word.kind is WordKind.LONG
    assert word.name == "delta"
    assert word.arity is ArgumentArity.REQUIRED

    word = manopts.classify_usage_word(word="--epsilon[=NUM]", position=2)
    assert word.kind is WordKind.LONG
    assert word.name == "epsilon"
    assert word.arity is ArgumentArity.OPTIONAL


@pytest.mark.parametrize(
    "word, position, short_seen",
    [
        ("-", 1, False),
        ("x", 2, False),
        ("-ab", 1, False),
        ("-abc", 1, False),
        ("--epsilon[=NUM", 2, False),
        ("-b", 2, True),
    ],
)
def test_classify_invalid_words(word: str, position: int, short_seen: bool):
    token = manopts.classify_usage_word(
        word=word, position=position, short_seen=short_seen
    )
    assert token.kind is WordKind.INVALID


def test_classify_prose():
    assert (
        manopts.classify_usage_word(word="Options:", position=1).kind
        is WordKind.PROSE_LINE
    )
    assert manopts.classify_usage_word(word="FILE", position=2).kind is WordKind.PROSE


def test_short_and_long_without_argument_share_identity():
    line = manopts.parse_usage_line(line="-x, --name  some words here")
    assert line == manopts.UsageLine(short="x", long="name", arity=ArgumentArity.NONE)

    table = manopts.build_option_table(usage="-x, --name  some words here")
    assert table.identity_of("x") == table.identity_of("name") == 0
    assert table.good()


def test_short_option_arity_guessed_from_word_count():
    assert manopts.parse_usage_line(line="-f FILE").arity is ArgumentArity.REQUIRED
    assert manopts.parse_usage_line(line="-f").arity is ArgumentArity.NONE
    assert (
        manopts.parse_usage_line(line="-f  delete the file").arity
        is ArgumentArity.NONE
    )


def test_long_option_arity_is_explicit():
    assert manopts.parse_usage_line(line="-d --delta=NUM").arity is ArgumentArity.REQUIRED
    # A long option decides on its own, whatever follows it.
    assert manopts.parse_usage_line(line="--all").arity is ArgumentArity.NONE
    assert manopts.parse_usage_line(line="--all  everything").arity is ArgumentArity.NONE


def test_optional_argument_needs_closing_bracket():
    line = manopts.parse_usage_line(line="--epsilon[=NUM]")
    assert line == manopts.UsageLine(
        short=None, long="epsilon", arity=ArgumentArity.OPTIONAL
    )

    with pytest.raises(manopts.InvalidUsageLine) as excinfo:
        manopts.parse_usage_line(line="--epsilon[=NUM", index=4)
    assert excinfo.value.index == 4
    assert str(excinfo.value) == "invalid option at line: 4\n--epsilon[=NUM"


def test_lines_that_define_nothing_are_ignored():
    assert manopts.parse_usage_line(line="") is None
    assert manopts.parse_usage_line(line="   \t ") is None
    assert manopts.parse_usage_line(line="Usage: prog [OPTION]... FILE") is None


def test_only_first_two_words_are_inspected():
    # The third word would be invalid on its own, but it is never looked at.
    line = manopts.parse_usage_line(line="-q --quiet -xyz")
    assert line == manopts.UsageLine(short="q", long="quiet", arity=ArgumentArity.NONE)


def test_two_short_options_on_one_line_are_invalid():
    with pytest.raises(manopts.InvalidUsageLine):
        manopts.parse_usage_line(line="-a -b")


def test_build_sample_usage():
    table = manopts.build_option_table(usage=USAGE)

    assert table.good()
    assert table.short_spec == ":abcd:e::f:"
    assert [opt.name for opt in table.long_options] == [
        "all",
        "batch",
        "delta",
        "epsilon",
    ]
    assert table.long_options[3] == manopts.LongOption(
        name="epsilon", arity=ArgumentArity.OPTIONAL, short="e"
    )
    assert [entry.identity for entry in table.entries] == [0, 1, 2, 3, 4, 5]
    assert table.identity_of("c") == 2
    assert table.identity_of("f") == 5
    assert table.entry(5).arity is ArgumentArity.REQUIRED
    assert table.entry(2).aliases == ("c",)


def test_duplicate_alias_is_reported_not_merged():
    table = manopts.build_option_table(usage="-a\n-a, --other\n-b")

    assert not table.good()
    assert table.diagnostics == ("duplicate short option: a",)
    # "other" still got a fresh identity; "-b" follows it.
    assert table.identity_of("a") == 0
    assert table.identity_of("other") == 1
    assert table.identity_of("b") == 2


def test_collision_consumes_no_identity():
    table = manopts.build_option_table(usage="-a, --all\n-a, --all\n-b")

    assert table.diagnostics == (
        "duplicate short option: a",
        "duplicate long option: all",
    )
    assert table.identity_of("b") == 1
    assert len(table.entries) == 2


def test_short_and_long_names_share_one_namespace():
    table = manopts.build_option_table(usage="-a, --all\n-b, --a")

    assert table.diagnostics == ("duplicate long option: a",)
    assert table.identity_of("a") == 0
    assert table.identity_of("b") == 1


def test_invalid_lines_accumulate_and_building_continues():
    table = manopts.build_option_table(usage="-ab\n-c\n--bad[=X\n-d")

    assert table.diagnostics == (
        "invalid option at line: 0\n-ab",
        "invalid option at line: 2\n--bad[=X",
    )
    assert table.identity_of("c") == 0
    assert table.identity_of("d") == 1


def test_table_is_read_only():
    table = manopts.build_option_table(usage="-a")
    with pytest.raises(TypeError):
        table.index["z"] = 3  # type: ignore[index]


def test_table_to_dict():
    payload = manopts.build_option_table(usage="-d, --delta=NUM").to_dict()
    assert payload == {
        "short_spec": ":d:",
        "long_options": [{"name": "delta", "arity": "required", "short": "d"}],
        "options": [
            {"identity": 0, "short": "d", "long": "delta", "arity": "required"}
        ],
        "diagnostics": [],
    }
