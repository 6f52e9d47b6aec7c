"""Unit tests for element-level parsers and the writer."""

from datetime import datetime, timedelta

from org_outline.model import (
    Headline,
    OrgLink,
    RepeaterType,
    TimestampType,
    split_quoted_string,
)
from org_outline.parsers import (
    find_all_links,
    parse_clock_line,
    parse_keyword_line,
    parse_link,
    parse_planning_line,
    parse_property_drawer,
    parse_property_line,
    parse_repeater,
    parse_timestamp,
    parse_timestamp_range,
)
from org_outline.writer import (
    format_headline,
    format_inactive_now,
    format_link,
    format_tags,
    format_timestamp,
)


class TestParseTimestamp:
    """Tests for parse_timestamp and parse_timestamp_range."""

    def test_active_date(self):
        """Test parsing an untimed active timestamp."""
        ts = parse_timestamp("<2026-02-01 Sun>")

        assert ts.type == TimestampType.ACTIVE
        assert ts.date == datetime(2026, 2, 1)
        assert ts.has_time is False
        assert ts.repeater is None

    def test_inactive_with_time(self):
        """Test parsing an inactive timestamp with a time of day."""
        ts = parse_timestamp("[2026-02-03 Tue 10:30]")

        assert ts.type == TimestampType.INACTIVE
        assert ts.date == datetime(2026, 2, 3, 10, 30)
        assert ts.has_time is True

    def test_repeater_and_delay(self):
        """Test that repeater and delay cookies are kept raw."""
        ts = parse_timestamp("<2026-02-01 Sun +1w -2d>")

        assert ts.repeater == "+1w"
        assert ts.delay == "-2d"

    def test_mismatched_brackets(self):
        """Test that <...] is not a timestamp."""
        assert parse_timestamp("<2026-02-01 Sun]") is None

    def test_invalid_calendar_date(self):
        """Test that an impossible date yields None instead of raising."""
        assert parse_timestamp("<2026-02-30 Mon>") is None

    def test_trailing_text_rejected(self):
        """Test that parse_timestamp requires the whole input."""
        assert parse_timestamp("<2026-02-01 Sun> later") is None

    def test_range(self):
        """Test parsing a start--end range."""
        ts = parse_timestamp_range("<2026-02-01 Sun>--<2026-02-03 Tue>")

        assert ts.date == datetime(2026, 2, 1)
        assert ts.range_end.date == datetime(2026, 2, 3)
        assert ts.range_end.range_end is None

    def test_range_not_accepted_as_single(self):
        """Test that parse_timestamp does not accept a range."""
        assert parse_timestamp("<2026-02-01 Sun>--<2026-02-03 Tue>") is None


class TestParseRepeater:
    """Tests for parse_repeater."""

    def test_standard(self):
        assert parse_repeater("+1w") == (RepeaterType.STANDARD, 1, "w")

    def test_from_today(self):
        assert parse_repeater(".+2d") == (RepeaterType.FROM_TODAY, 2, "d")

    def test_next_future_with_habit_suffix(self):
        """Test that a habit range suffix is ignored."""
        assert parse_repeater("++1m/3m") == (RepeaterType.NEXT_FUTURE, 1, "m")

    def test_garbage(self):
        assert parse_repeater("weekly") is None


class TestParseLink:
    """Tests for parse_link and find_all_links."""

    def test_typed_link_with_description(self):
        """Test a web link with description."""
        link = parse_link("[[https://example.com][Example]]")

        assert link.link_type == "https"
        assert link.path == "//example.com"
        assert link.description == "Example"

    def test_file_link_with_search_option(self):
        """Test that the search option is split off on the last '::'."""
        link = parse_link("[[file:notes.org::*Heading]]")

        assert link.link_type == "file"
        assert link.path == "notes.org"
        assert link.search_option == "*Heading"

    def test_fuzzy_link(self):
        """Test that a link without a type prefix is fuzzy."""
        link = parse_link("[[Some Title]]")

        assert link.link_type == "fuzzy"
        assert link.path == "Some Title"
        assert link.description is None

    def test_empty_link(self):
        assert parse_link("[[]]") is None

    def test_find_all_links_positions(self):
        """Test that positions point at the opening brackets."""
        links = find_all_links("See [[a]] and [[b][B]]")

        assert [link.path for link in links] == ["a", "b"]
        assert [link.position for link in links] == [4, 14]

    def test_format_link_roundtrip(self):
        """Test formatting a link with search option and description."""
        link = OrgLink(link_type="file", path="x.org", description="X", search_option="#id")

        assert format_link(link) == "[[file:x.org::#id][X]]"


class TestPropertiesAndKeywords:
    """Tests for property lines, drawers and keyword lines."""

    def test_property_line(self):
        prop = parse_property_line(":ID: abc-123")

        assert prop.key == "ID"
        assert prop.value == "abc-123"

    def test_property_line_empty_value(self):
        """Test that a property may have no value."""
        prop = parse_property_line(":EMPTY:")

        assert prop.key == "EMPTY"
        assert prop.value == ""

    def test_property_drawer_lookup_is_case_insensitive(self):
        drawer = parse_property_drawer(":PROPERTIES:\n:Custom_ID: x\n:END:")

        assert drawer.get("CUSTOM_ID") == "x"

    def test_unterminated_drawer(self):
        """Test that a drawer without :END: is not a drawer."""
        assert parse_property_drawer(":PROPERTIES:\n:ID: x\n") is None

    def test_keyword_line(self):
        kw = parse_keyword_line("#+TITLE: My Notes")

        assert kw.key == "TITLE"
        assert kw.value == "My Notes"

    def test_comment_is_not_keyword(self):
        assert parse_keyword_line("# just a comment") is None


class TestParsePlanningLine:
    """Tests for parse_planning_line."""

    def test_scheduled_and_deadline(self):
        """Test a planning line with two entries."""
        planning = parse_planning_line("SCHEDULED: <2026-02-01 Sun> DEADLINE: <2026-02-05 Thu>")

        assert planning.scheduled.date == datetime(2026, 2, 1)
        assert planning.deadline.date == datetime(2026, 2, 5)
        assert planning.closed is None

    def test_any_order(self):
        """Test that entries may appear in any order."""
        planning = parse_planning_line("CLOSED: [2026-02-03 Tue 10:00] SCHEDULED: <2026-02-01 Sun>")

        assert planning.closed.type == TimestampType.INACTIVE
        assert planning.scheduled is not None

    def test_trailing_text_fails(self):
        assert parse_planning_line("SCHEDULED: <2026-02-01 Sun> extra") is None

    def test_malformed_timestamp_fails(self):
        assert parse_planning_line("SCHEDULED: <tomorrow>") is None


class TestParseClockLine:
    """Tests for parse_clock_line."""

    def test_closed_clock(self):
        """Test a closed clock with duration."""
        entry = parse_clock_line("CLOCK: [2026-02-03 Tue 09:00]--[2026-02-03 Tue 10:30] =>  1:30")

        assert entry.start.date == datetime(2026, 2, 3, 9, 0)
        assert entry.end.date == datetime(2026, 2, 3, 10, 30)
        assert entry.duration == timedelta(hours=1, minutes=30)

    def test_open_clock(self):
        """Test a clock that has not been closed yet."""
        entry = parse_clock_line("  CLOCK: [2026-02-03 Tue 09:00]")

        assert entry.end is None
        assert entry.duration is None

    def test_not_a_clock(self):
        assert parse_clock_line("CLOCK: soon") is None


class TestWriter:
    """Tests for rendering model objects back to text."""

    def test_format_timestamp_roundtrip(self):
        """Test that a parsed timestamp formats back to its source."""
        text = "<2026-02-01 Sun 10:00 +1w>"

        assert format_timestamp(parse_timestamp(text)) == text

    def test_format_range(self):
        text = "<2026-02-01 Sun>--<2026-02-03 Tue>"

        assert format_timestamp(parse_timestamp_range(text)) == text

    def test_format_inactive_now(self):
        assert format_inactive_now(datetime(2026, 2, 3, 10, 0)) == "[2026-02-03 Tue 10:00]"

    def test_format_headline(self):
        headline = Headline(level=2, title="Task", todo_keyword="TODO", priority="A", tags=["a", "b"])

        assert format_headline(headline) == "** TODO [#A] Task :a:b:"

    def test_format_tags_empty(self):
        assert format_tags([]) is None


class TestSplitQuotedString:
    """Tests for split_quoted_string."""

    def test_quoted_segments(self):
        assert split_quoted_string('foo "bar baz" qux') == ["foo", "bar baz", "qux"]

    def test_escaped_quote(self):
        assert split_quoted_string('"say \\"hi\\""') == ['say "hi"']
