"""Unit tests for document assembly."""

from datetime import datetime
from textwrap import dedent

import pytest

from org_outline.config import DEFAULT_CONFIG, LogAction
from org_outline.document import (
    compute_block_ranges,
    compute_outline_path,
    compute_outline_path_at_position,
    effective_config,
    find_headline_starts,
    get_nodes,
    parse,
    parse_file,
    reassemble_sections,
)
from org_outline.errors import OrgFileNotFoundError


def _shape(doc):
    return [(h.level, h.title, h.todo_keyword, h.priority, h.tags, h.position) for h in doc.headlines]


SAMPLE = dedent("""\
    #+TITLE: Sample
    #+FILETAGS: :home:
    Intro text.

    * TODO [#A] Pay rent :money:
    SCHEDULED: <2026-02-01 Sun +1m>
    :PROPERTIES:
    :ID: rent
    :END:
    ** Find receipt
    #+BEGIN_EXAMPLE
    * not a headline
    #+END_EXAMPLE
    * DONE Water plants


    * Notes
    See [[id:rent][rent]].
    """)


class TestParse:
    """Tests for parse and parse_with_config."""

    def test_headlines(self):
        """Test headline fields on a mixed document."""
        doc = parse(SAMPLE)

        assert [h.title for h in doc.headlines] == ["Pay rent", "Find receipt", "Water plants", "Notes"]
        rent = doc.headlines[0]
        assert rent.level == 1
        assert rent.todo_keyword == "TODO"
        assert rent.priority == "A"
        assert rent.tags == ["money"]
        assert rent.planning.scheduled.date == datetime(2026, 2, 1)
        assert rent.planning.scheduled.repeater == "+1m"
        assert rent.properties.get("ID") == "rent"

    def test_positions_point_at_stars(self):
        """Test that every headline position indexes its first '*'."""
        doc = parse(SAMPLE)

        for h in doc.headlines:
            assert SAMPLE[h.position] == "*"
            assert SAMPLE.startswith("*" * h.level + " ", h.position)

    def test_file_keywords(self):
        doc = parse(SAMPLE)

        assert [(kw.key, kw.value) for kw in doc.keywords] == [("TITLE", "Sample"), ("FILETAGS", ":home:")]

    def test_links_carry_node_id(self):
        """Test that links are paired with the ID of their node."""
        content = "* A\n:PROPERTIES:\n:ID: a1\n:END:\nSee [[id:b1]]\n* B\n[[x]]\n"
        doc = parse(content)

        (first, first_id), (second, second_id) = doc.links
        assert first.path == "b1"
        assert first_id == "a1"
        assert first.position == content.index("[[id:b1]]")
        assert second.path == "x"
        assert second_id is None

    def test_determinism(self):
        """Test that parsing the same content twice gives the same result."""
        assert _shape(parse(SAMPLE)) == _shape(parse(SAMPLE))

    def test_empty_document(self):
        doc = parse("")

        assert doc.headlines == []
        assert doc.keywords == []

    def test_stars_without_space_are_text(self):
        doc = parse("*bold* text\n* Real\n")

        assert [h.title for h in doc.headlines] == ["Real"]


class TestBlockExclusion:
    """Tests for literal block handling."""

    def test_headline_inside_block_ignored(self):
        """Test that a headline inside a src block is not a headline."""
        doc = parse("* Real\n#+BEGIN_SRC org\n* Fake\n#+END_SRC\n* Also Real\n")

        assert [h.title for h in doc.headlines] == ["Real", "Also Real"]

    def test_block_names_need_not_match(self):
        content = "#+BEGIN_QUOTE\n* x\n#+end_src\n"

        assert compute_block_ranges(content) == [(0, len(content) - 1)]

    def test_unterminated_block_is_ignored(self):
        """Test that a begin without an end hides nothing."""
        doc = parse("* A\n#+BEGIN_SRC\n* B\n")

        assert [h.title for h in doc.headlines] == ["A", "B"]

    def test_find_headline_starts(self):
        assert find_headline_starts("* A\n#+BEGIN_SRC\n* B\n#+END_SRC\n** C\n") == [0, 30]


class TestPlanningAdjacency:
    """Tests for planning-line recognition."""

    def test_planning_after_blank_line_ignored(self):
        """Test that planning must be on the line right after the headline."""
        doc = parse("* Task\n\nSCHEDULED: <2026-02-01 Sun>\n")

        assert doc.headlines[0].planning is None

    def test_malformed_planning_yields_none(self):
        doc = parse("* Task\nSCHEDULED: someday\n")

        assert doc.headlines[0].planning is None


class TestConfigPrecedence:
    """Tests for per-document TODO keywords."""

    def test_file_todo_line_replaces_keywords(self):
        """Test that #+TODO: replaces the default keyword set."""
        doc = parse("#+TODO: OPEN | CLOSED\n* OPEN Task\n* TODO Not a keyword\n")

        assert doc.headlines[0].todo_keyword == "OPEN"
        assert doc.headlines[0].title == "Task"
        assert doc.headlines[1].todo_keyword is None
        assert doc.headlines[1].title == "TODO Not a keyword"

    def test_effective_config_reads_startup(self):
        cfg = effective_config(DEFAULT_CONFIG, "#+STARTUP: nologdone\n* Task\n")

        assert cfg.log_done == LogAction.NONE


class TestRoundTrip:
    """Tests for reassemble_sections."""

    def test_structure_survives_reassembly(self):
        """Test that a no-op edit keeps headline count and order."""
        rebuilt = reassemble_sections(SAMPLE)

        before = [(h.level, h.title, h.todo_keyword, h.tags) for h in parse(SAMPLE).headlines]
        after = [(h.level, h.title, h.todo_keyword, h.tags) for h in parse(rebuilt).headlines]
        assert after == before

    def test_clean_document_is_unchanged(self):
        content = "#+TITLE: T\n* A\nbody\n** B\n"

        assert reassemble_sections(content) == content


class TestOutlinePath:
    """Tests for outline path helpers."""

    def test_paths(self):
        doc = parse("* A\n** B\n*** C\n** D\n")
        a, b, c, d = doc.headlines

        assert compute_outline_path(doc.headlines, a) == []
        assert compute_outline_path(doc.headlines, c) == ["A", "B"]
        assert compute_outline_path(doc.headlines, d) == ["A"]

    def test_path_at_position(self):
        content = "* A\n** B\ntext\n"
        doc = parse(content)

        assert compute_outline_path_at_position(doc.headlines, content.index("text")) == ["A", "B"]
        assert compute_outline_path_at_position(doc.headlines, 0) == ["A"]

    def test_position_before_first_headline(self):
        doc = parse("intro\n* A\n")

        assert compute_outline_path_at_position(doc.headlines, 0) == []


class TestGetNodes:
    """Tests for get_nodes."""

    def test_file_node_first(self):
        """Test that a file-level ID produces a synthetic level-0 node."""
        content = ":PROPERTIES:\n:ID: file-id\n:END:\n#+TITLE: Notes\n#+FILETAGS: :a:\n* A\n:PROPERTIES:\n:ID: a\n:END:\n* B\n"
        nodes = get_nodes(parse(content))

        assert [node_id for node_id, _, _ in nodes] == ["file-id", "a"]
        _, file_node, _ = nodes[0]
        assert file_node.level == 0
        assert file_node.position == 0
        assert file_node.title == "Notes"
        assert file_node.tags == ["a"]

    def test_no_ids(self):
        assert get_nodes(parse("* A\n")) == []


class TestParseFile:
    """Tests for parse_file."""

    def test_reads_file(self, tmp_path):
        path = tmp_path / "notes.org"
        path.write_text("* TODO Task\n", encoding="utf-8")

        doc = parse_file(path)

        assert doc.file_path == str(path)
        assert doc.headlines[0].todo_keyword == "TODO"

    def test_missing_file(self, tmp_path):
        with pytest.raises(OrgFileNotFoundError):
            parse_file(tmp_path / "missing.org")
