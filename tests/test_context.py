"""
Тесты сборки контекста.

Запуск тестов:
  pytest -q tests/test_context.py
"""

from macro_rag.context import LOCAL_SYSTEM_TEMPLATE, assemble, render_system_prompt, summarize_metadata
from macro_rag.vectorstore import Match


def _matches():
    return [
        Match(
            content="In 2007/08, Revenues was 22.7 Annual % Change",
            metadata={"indicator": "Revenues", "units": "Annual % Change", "year": "2007/08", "value": "22.7"},
            score=0.91,
        ),
        Match(
            content="In 2008/09, Broad Money (M2) was 10.5 Annual % Change",
            metadata={"year": "2008/09", "indicator": "Broad Money (M2)"},
            score=0.83,
        ),
    ]


def test_assemble_renders_blocks_in_input_order() -> None:
    assert assemble(_matches()) == (
        "In 2007/08, Revenues was 22.7 Annual % Change "
        "(Indicator: Revenues, Units: Annual % Change, Year: 2007/08)"
        "\n\n"
        "In 2008/09, Broad Money (M2) was 10.5 Annual % Change "
        "(Indicator: Broad Money (M2), Year: 2008/09)"
    )


def test_absent_fields_are_skipped() -> None:
    assert summarize_metadata(Match(content="x", metadata={"units": "%"})) == "(Units: %)"
    assert summarize_metadata(Match(content="x", metadata={})) == "()"


def test_empty_input_gives_empty_string() -> None:
    assert assemble([]) == ""


def test_assemble_is_idempotent_and_does_not_reorder() -> None:
    matches = list(reversed(_matches()))
    first = assemble(matches)
    assert assemble(matches) == first
    assert first.startswith("In 2008/09")
    assert [m.score for m in matches] == [0.83, 0.91]


def test_system_prompt_substitutes_context_verbatim() -> None:
    context = "In 2008, X was {1} %"
    prompt = render_system_prompt(context)
    assert "{context}" not in prompt
    assert prompt.endswith(context + "\n")
    assert prompt.startswith(LOCAL_SYSTEM_TEMPLATE.split("{context}")[0])
