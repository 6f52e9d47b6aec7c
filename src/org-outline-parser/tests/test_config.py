"""Unit tests for configuration layers and document directives."""

from org_outline.config import (
    DEFAULT_CONFIG,
    LogAction,
    all_keywords,
    build_config,
    build_headline_regex,
    is_active_state,
    is_done_state,
    layer_from_env,
    layer_from_mapping,
)
from org_outline.file_config import (
    layer_from_keywords,
    merge_file_config,
    parse_keyword_token,
    parse_priorities,
    parse_startup_options,
    parse_tags_line,
    parse_todo_line,
)
from org_outline.model import Keyword


class TestDefaults:
    """Tests for the built-in configuration."""

    def test_default_keywords(self):
        assert all_keywords(DEFAULT_CONFIG) == [
            "TODO", "NEXT", "WAITING", "HOLD", "SOMEDAY", "PROJECT",
            "DONE", "CANCELLED", "CANCELED",
        ]

    def test_default_logging(self):
        assert DEFAULT_CONFIG.log_done == LogAction.TIME
        assert DEFAULT_CONFIG.log_reschedule == LogAction.NONE
        assert DEFAULT_CONFIG.log_into_drawer == "LOGBOOK"

    def test_state_classification(self):
        assert is_active_state(DEFAULT_CONFIG, "NEXT")
        assert is_done_state(DEFAULT_CONFIG, "CANCELLED")
        assert not is_done_state(DEFAULT_CONFIG, "TODO")


class TestBuildHeadlineRegex:
    """Tests for build_headline_regex."""

    def test_full_headline(self):
        """Test all groups on a fully decorated headline."""
        m = build_headline_regex(["TODO", "DONE"]).match("** TODO [#A] Write report :work:urgent:")

        assert m.group(1) == "**"
        assert m.group(2) == "TODO"
        assert m.group(3) == "A"
        assert m.group(4) == "Write report"
        assert m.group(5) == ":work:urgent:"

    def test_keyword_must_be_whole_token(self):
        """Test that TODOS is not read as TODO."""
        m = build_headline_regex(["TODO"]).match("* TODOS for today")

        assert m.group(2) is None
        assert m.group(4) == "TODOS for today"

    def test_unknown_keyword_stays_in_title(self):
        m = build_headline_regex(["OPEN"]).match("* TODO Not a keyword")

        assert m.group(2) is None
        assert m.group(4) == "TODO Not a keyword"


class TestLayerFromMapping:
    """Tests for layer_from_mapping."""

    def test_camel_and_snake_case(self):
        """Test that both key styles are accepted."""
        layer = layer_from_mapping({"logDone": "note", "log_refile": "time"})

        assert layer == {"log_done": LogAction.NOTE, "log_refile": LogAction.TIME}

    def test_malformed_fields_skipped(self):
        """Test that bad values are dropped field by field."""
        layer = layer_from_mapping({
            "logDone": "sometimes",
            "deadlineWarningDays": "x",
            "tagInheritance": False,
        })

        assert layer == {"tag_inheritance": False}

    def test_negative_warning_days_clamped(self):
        assert layer_from_mapping({"deadlineWarningDays": -3}) == {"deadline_warning_days": 0}

    def test_keyword_tokens(self):
        """Test that string keywords use #+TODO: token syntax."""
        layer = layer_from_mapping({"todoKeywords": {"activeStates": ["OPEN", "WAIT(w@/!)"]}})
        cfg = build_config(layer)

        active = cfg.todo_keywords.active_states
        assert [d.keyword for d in active] == ["OPEN", "WAIT"]
        assert active[1].log_on_enter == LogAction.NOTE
        assert active[1].log_on_leave == LogAction.TIME
        # Done states untouched
        assert [d.keyword for d in cfg.todo_keywords.done_states] == ["DONE", "CANCELLED", "CANCELED"]

    def test_unknown_keys_ignored(self):
        assert layer_from_mapping({"colour": "blue"}) == {}


class TestLayerFromEnv:
    """Tests for layer_from_env."""

    def test_values(self):
        layer = layer_from_env({
            "ORGMEND_LOG_DONE": "note",
            "ORGMEND_DEADLINE_WARNING_DAYS": "7",
            "ORGMEND_TAG_INHERITANCE": "no",
            "ORGMEND_ARCHIVE_LOCATION": "archive.org::",
        })

        assert layer == {
            "log_done": LogAction.NOTE,
            "deadline_warning_days": 7,
            "tag_inheritance": False,
            "archive_location": "archive.org::",
        }

    def test_empty_drawer_means_no_drawer(self):
        assert layer_from_env({"ORGMEND_LOG_INTO_DRAWER": ""}) == {"log_into_drawer": None}

    def test_invalid_values_ignored(self):
        layer = layer_from_env({
            "ORGMEND_LOG_DONE": "loud",
            "ORGMEND_DEADLINE_WARNING_DAYS": "soon",
            "ORGMEND_TAG_INHERITANCE": "maybe",
        })

        assert layer == {}

    def test_custom_prefix(self):
        assert layer_from_env({"X_LOG_DONE": "none"}, prefix="X_") == {"log_done": LogAction.NONE}


class TestBuildConfig:
    """Tests for build_config."""

    def test_later_layers_win(self):
        cfg = build_config({"deadline_warning_days": 3}, {"deadline_warning_days": 5})

        assert cfg.deadline_warning_days == 5

    def test_nested_merge_is_field_by_field(self):
        """Test that setting one priority letter keeps the others."""
        cfg = build_config({"priorities": {"lowest": "E"}})

        assert cfg.priorities.highest == "A"
        assert cfg.priorities.lowest == "E"
        assert cfg.priorities.default == "B"

    def test_base_is_not_mutated(self):
        build_config({"log_done": "none"})

        assert DEFAULT_CONFIG.log_done == LogAction.TIME

    def test_empty_layers(self):
        assert build_config({}, {}) == DEFAULT_CONFIG


class TestTodoDirectives:
    """Tests for #+TODO: and keyword token parsing."""

    def test_todo_line_with_bar(self):
        cfg = parse_todo_line("OPEN NEXT | CLOSED")

        assert [d.keyword for d in cfg.active_states] == ["OPEN", "NEXT"]
        assert [d.keyword for d in cfg.done_states] == ["CLOSED"]

    def test_todo_line_without_bar(self):
        """Test that the last keyword is the done state."""
        cfg = parse_todo_line("A B C")

        assert [d.keyword for d in cfg.active_states] == ["A", "B"]
        assert [d.keyword for d in cfg.done_states] == ["C"]

    def test_token_with_fast_key_and_logging(self):
        d = parse_keyword_token("WAIT(w@/!)")

        assert d.keyword == "WAIT"
        assert d.log_on_enter == LogAction.NOTE
        assert d.log_on_leave == LogAction.TIME

    def test_token_enter_only(self):
        d = parse_keyword_token("DONE(d!)")

        assert d.log_on_enter == LogAction.TIME
        assert d.log_on_leave == LogAction.NONE

    def test_plain_token(self):
        d = parse_keyword_token("DONE")

        assert d.log_on_enter == LogAction.NONE

    def test_todo_lines_accumulate(self):
        layer = layer_from_keywords([
            Keyword("TODO", "A | B"),
            Keyword("SEQ_TODO", "C | D"),
        ])

        assert [d["keyword"] for d in layer["todo_keywords"]["active_states"]] == ["A", "C"]
        assert [d["keyword"] for d in layer["todo_keywords"]["done_states"]] == ["B", "D"]


class TestStartupAndPriorities:
    """Tests for #+STARTUP:, #+PRIORITIES: and #+ARCHIVE:."""

    def test_startup_toggles(self):
        options = parse_startup_options("logdone nologrepeat lognoteredeadline overview")

        assert options == {
            "log_done": LogAction.TIME,
            "log_repeat": LogAction.NONE,
            "log_redeadline": LogAction.NOTE,
        }

    def test_first_startup_line_wins(self):
        layer = layer_from_keywords([
            Keyword("STARTUP", "nologdone"),
            Keyword("STARTUP", "logdone"),
        ])

        assert layer["log_done"] == LogAction.NONE

    def test_priorities(self):
        assert parse_priorities("A E C") == {"highest": "A", "lowest": "E", "default": "C"}

    def test_bad_priorities(self):
        assert parse_priorities("A B") is None

    def test_merge_file_config(self):
        cfg = merge_file_config(DEFAULT_CONFIG, [
            Keyword("PRIORITIES", "1 5 3"),
            Keyword("ARCHIVE", "%s_done::"),
        ])

        assert cfg.priorities.highest == "1"
        assert cfg.priorities.lowest == "5"
        assert cfg.archive_location == "%s_done::"


class TestTagsLine:
    """Tests for #+TAGS: parsing."""

    def test_groups(self):
        groups = parse_tags_line("work(w) { @home(h) @office(o) } errand")

        assert [(g.exclusive, [t.name for t in g.tags]) for g in groups] == [
            (False, ["work"]),
            (True, ["@home", "@office"]),
            (False, ["errand"]),
        ]
        assert groups[0].tags[0].fast_key == "w"
