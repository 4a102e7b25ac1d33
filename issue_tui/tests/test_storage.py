"""Tests for the file-backed issue store, run against tmp_path."""

from datetime import date

import pytest

from issue_tui.interfaces import StorageError
from issue_tui.models import FilterMode, Issue, IssueStatus, IssueType
from issue_tui.orchestrator import TaskOrchestrator
from issue_tui.state_machine import SessionMachine
from issue_tui.storage import (
    FileIssueStore,
    create_frontmatter,
    get_string,
    next_issue_id,
    parse_frontmatter,
)
from issue_tui.tests.conftest import FakeVCS, GatedRunner
from issue_tui.view import frame_lines


class RecordingVCS:
    def __init__(self):
        self.staged = []

    def add(self, *paths):
        self.staged.extend(paths)


@pytest.fixture
def vcs():
    return RecordingVCS()


@pytest.fixture
def store(tmp_path, vcs):
    return FileIssueStore(tmp_path, vcs=vcs)


# ---------------------------------------------------------------------------
# Frontmatter helpers
# ---------------------------------------------------------------------------

class TestFrontmatter:

    def test_parse(self):
        data, body = parse_frontmatter("---\ntitle: Fix it\nstatus: open\n---\n\nBody text\n")
        assert data == {"title": "Fix it", "status": "open"}
        assert body == "Body text"

    def test_no_frontmatter(self):
        data, body = parse_frontmatter("  just text  \n")
        assert data == {}
        assert body == "just text"

    def test_invalid_yaml_raises(self):
        with pytest.raises(StorageError):
            parse_frontmatter("---\ntitle: [unclosed\n---\nbody")

    def test_non_mapping_raises(self):
        with pytest.raises(StorageError):
            parse_frontmatter("---\n- a\n- b\n---\nbody")

    def test_create_then_parse(self):
        text = create_frontmatter({"title": "Café: ünïcode", "type": "bug"}, "Details")
        assert text.startswith("---\n")
        data, body = parse_frontmatter(text)
        assert data["title"] == "Café: ünïcode"
        assert body == "Details"

    def test_empty_body_omitted(self):
        assert create_frontmatter({"a": 1}, "") == "---\na: 1\n---\n"


class TestGetString:

    def test_integer_id_is_zero_padded(self):
        assert get_string({"id": 7}, "id") == "0007"

    def test_other_integers_not_padded(self):
        assert get_string({"count": 7}, "count") == "7"

    def test_date(self):
        assert get_string({"created": date(2024, 3, 9)}, "created") == "2024-03-09"

    def test_missing(self):
        assert get_string({}, "title") == ""

    def test_bool(self):
        assert get_string({"flag": True}, "flag") == "true"


class TestNextIssueId:

    def test_empty(self):
        assert next_issue_id([]) == "0001"

    def test_one_past_highest(self):
        issues = [Issue(id="0003", title="a"), Issue(id="0010", title="b"), Issue(id="x", title="c")]
        assert next_issue_id(issues) == "0011"


# ---------------------------------------------------------------------------
# FileIssueStore
# ---------------------------------------------------------------------------

class TestIndex:

    def test_missing_index_is_empty(self, store):
        assert store.load_index() == []

    def test_integer_ids_in_index(self, store):
        store.issues_dir.mkdir()
        store.index_path.write_text(
            "issues:\n"
            "  - id: 1\n    title: First\n    type: bug\n    status: open\n    created: 2024-01-02\n"
            "  - id: 2\n    title: Second\n    type: chore\n    status: weird\n"
        )
        issues = store.load_index()
        assert [i.id for i in issues] == ["0001", "0002"]
        assert issues[0].type is IssueType.BUG
        assert issues[0].created.year == 2024
        # Unknown values survive as plain strings
        assert issues[1].type == "chore"
        assert issues[1].status == "weird"

    def test_corrupt_index_raises(self, store):
        store.issues_dir.mkdir()
        store.index_path.write_text("issues: [\n")
        with pytest.raises(StorageError):
            store.load_index()

    def test_filters(self, store):
        for title in ("open", "closed", "invalid", "planned"):
            store.create_issue(title, IssueType.FEATURE)
        store.update_status("0002", IssueStatus.CLOSED)
        store.update_status("0003", IssueStatus.INVALID)
        store.update_status("0004", IssueStatus.PLANNED)

        assert [i.title for i in store.load_issues(FilterMode.ACTIVE)] == ["open", "planned"]
        assert [i.title for i in store.load_issues(FilterMode.CLOSED)] == ["closed", "invalid"]
        assert len(store.load_issues(FilterMode.ALL)) == 4


class TestCreateIssue:

    def test_writes_brief_and_index(self, store, vcs):
        issue = store.create_issue("Add export", IssueType.FEATURE, content="Export to CSV")

        assert issue.id == "0001"
        assert issue.status is IssueStatus.OPEN
        brief = store.load_brief("0001")
        assert brief.title == "Add export"
        assert brief.type is IssueType.FEATURE
        assert brief.content == "Export to CSV"
        assert [i.id for i in store.load_index()] == ["0001"]
        assert store.index_path in vcs.staged
        assert store.brief_path("0001") in vcs.staged

    def test_ids_are_sequential(self, store):
        store.create_issue("a", IssueType.BUG)
        assert store.create_issue("b", IssueType.BUG).id == "0002"

    def test_works_without_vcs(self, tmp_path):
        store = FileIssueStore(tmp_path)
        assert store.create_issue("a", IssueType.REFACTOR).id == "0001"


class TestBrief:

    def test_missing_brief(self, store):
        assert store.load_brief("0042") is None
        assert store.load_body("0042") is None

    def test_save_body(self, store):
        store.create_issue("a", IssueType.BUG)
        store.save_body("0001", "New body")
        assert store.load_body("0001") == "New body"
        assert store.load_brief("0001").title == "a"

    def test_save_body_unknown_issue(self, store):
        with pytest.raises(StorageError):
            store.save_body("0042", "x")

    def test_update_status_records_reason(self, store):
        store.create_issue("a", IssueType.BUG)
        store.update_status("0001", IssueStatus.INVALID, "Discarded by user")

        brief = store.load_brief("0001")
        assert brief.status is IssueStatus.INVALID
        assert brief.discard_reason == "Discarded by user"
        assert store.load_index()[0].status is IssueStatus.INVALID

    def test_update_status_unknown_issue(self, store):
        with pytest.raises(StorageError):
            store.update_status("0042", IssueStatus.CLOSED)

    def test_sync_copies_edited_title_and_type(self, store):
        store.create_issue("Old title", IssueType.FEATURE)
        text = store.brief_path("0001").read_text()
        text = text.replace("Old title", "New title").replace("type: feature", "type: bug")
        store.brief_path("0001").write_text(text)

        assert store.sync_brief_to_index("0001")
        entry = store.load_index()[0]
        assert entry.title == "New title"
        assert entry.type is IssueType.BUG
        assert not store.sync_brief_to_index("0001")

    def test_sync_without_brief(self, store):
        assert not store.sync_brief_to_index("0042")


class TestContentFiles:

    def test_analysis_and_plan(self, store, vcs):
        store.create_issue("a", IssueType.BUG)
        assert not store.analysis_exists("0001")
        assert store.load_analysis("0001") == ""

        store.save_analysis("0001", "# Analysis")
        store.save_plan("0001", "# Plan")

        assert store.analysis_exists("0001")
        assert store.plan_exists("0001")
        assert store.load_analysis("0001") == "# Analysis"
        assert store.load_plan("0001") == "# Plan"
        assert store.plan_path("0001") in vcs.staged

    def test_session_round_trip_is_stripped(self, store):
        store.save_session("0001", "abc-123\n")
        assert store.load_session("0001") == "abc-123"


class TestUndecodableFiles:
    """Files saved in a non-UTF-8 encoding surface as StorageError."""

    def test_brief(self, store):
        store.create_issue("a", IssueType.BUG)
        store.brief_path("0001").write_bytes(b"---\ntitle: t\n---\n\xff\xfe bad")
        with pytest.raises(StorageError, match="decoding"):
            store.load_brief("0001")

    def test_index(self, store):
        store.issues_dir.mkdir()
        store.index_path.write_bytes(b"issues:\n  - id: 1\n    title: \xff\n")
        with pytest.raises(StorageError, match="decoding"):
            store.load_index()

    def test_session_keeps_running(self, store):
        store.create_issue("a", IssueType.BUG)
        store.brief_path("0001").write_bytes(b"---\ntitle: t\n---\n\xff\xfe bad")
        runner = GatedRunner()
        machine = SessionMachine(store, FakeVCS(), TaskOrchestrator(runner))
        machine.resize(100, 30)
        machine.refresh_issues()
        assert [i.id for i in machine.issues] == ["0001"]
        assert any("brief.md not found" in line for line in frame_lines(machine))

        store.index_path.write_bytes(b"issues:\n  - id: 1\n    title: \xff\n")
        machine.refresh_issues()
        assert machine.status_message.startswith("Failed to load issues")
        assert [i.id for i in machine.issues] == ["0001"]
        runner.release()
