"""
Tests for IssueRepository.

Tests:
- Creation defaults and timeline seeding
- Identifier validation and lookups
- Filtering (search, category, status, reporter) and pagination
- Partial updates and deletion
- Status counts
"""

from datetime import datetime, timedelta

import pytest

from urbanfix.exceptions import AlreadyUpvoted, InvalidIssueId, IssueNotFound
from urbanfix.models import Issue, IssueStatus, IssueTimelineEntry, IssueUpvote
from urbanfix.repositories import IssueRepository


def create_issue(repo, title="Pothole", email="a@x.com", **fields):
    return repo.create(title=title, posted_by_email=email, posted_by_name="Alice", **fields)


def seed_ordered_issues(repo, session, count, **fields):
    """Create issues whose created_at increases with their index."""
    base = datetime(2024, 1, 1, 8, 0, 0)
    issues = []
    for i in range(count):
        issue = create_issue(repo, title=f"Issue {i + 1}", **fields)
        issue.created_at = base + timedelta(minutes=i)
        issues.append(issue)
    session.flush()
    return issues


class TestCreate:
    """Tests for IssueRepository.create."""

    def test_create_applies_defaults(self, issue_repo):
        issue = create_issue(issue_repo)

        assert len(issue.id) == 32
        assert issue.status == IssueStatus.PENDING.value
        assert issue.category == "General"
        assert issue.priority == "Normal"
        assert issue.upvotes == 0
        assert issue.upvoted_users == []
        assert issue.created_at is not None

    def test_create_seeds_one_timeline_entry(self, issue_repo):
        issue = create_issue(issue_repo)

        assert len(issue.timeline) == 1
        entry = issue.timeline[0]
        assert entry.status == "Pending"
        assert entry.updated_by == "a@x.com"
        assert "Alice" in entry.message

    def test_create_forces_status_and_counter(self, issue_repo):
        issue = create_issue(issue_repo, status="Resolved", upvotes=42)

        assert issue.status == "Pending"
        assert issue.upvotes == 0

    def test_create_keeps_supplied_timeline(self, issue_repo):
        timeline = [
            {"status": "Pending", "message": "Imported from paper form", "updated_by": "clerk@city.gov"},
            {"status": "Pending", "message": "Photo attached", "updated_by": "clerk@city.gov"},
        ]
        issue = create_issue(issue_repo, timeline=timeline)

        assert [e.message for e in issue.timeline] == [
            "Imported from paper form",
            "Photo attached",
        ]

    def test_create_keeps_supplied_category_and_priority(self, issue_repo):
        issue = create_issue(issue_repo, category="Roads", priority="High")

        assert issue.category == "Roads"
        assert issue.priority == "High"


class TestGetById:
    """Tests for identifier validation and lookup."""

    def test_get_existing(self, issue_repo):
        created = create_issue(issue_repo)

        assert issue_repo.get_by_id(created.id).title == "Pothole"

    def test_get_missing_raises_not_found(self, issue_repo):
        with pytest.raises(IssueNotFound):
            issue_repo.get_by_id("0" * 32)

    @pytest.mark.parametrize("bad_id", ["", "123", "z" * 32, "A" * 32, "0" * 33, None])
    def test_malformed_id_rejected(self, issue_repo, bad_id):
        with pytest.raises(InvalidIssueId):
            issue_repo.get_by_id(bad_id)

    def test_malformed_id_checked_before_query(self, issue_repo, monkeypatch):
        def fail(*args, **kwargs):
            raise AssertionError("storage must not be queried")

        monkeypatch.setattr(issue_repo.session, "get", fail)

        with pytest.raises(InvalidIssueId):
            issue_repo.get_by_id("not-an-id")


class TestList:
    """Tests for filtering and pagination."""

    def test_most_recent_first(self, issue_repo, test_session):
        seed_ordered_issues(issue_repo, test_session, 3)

        total, issues = issue_repo.list()

        assert total == 3
        assert [i.title for i in issues] == ["Issue 3", "Issue 2", "Issue 1"]

    def test_second_page_returns_items_11_to_20(self, issue_repo, test_session):
        seed_ordered_issues(issue_repo, test_session, 25)

        total, issues = issue_repo.list({}, page=2, limit=10)

        assert total == 25
        # Newest first: positions 11-20 are Issue 15 down to Issue 6
        assert [i.title for i in issues] == [f"Issue {n}" for n in range(15, 5, -1)]

    def test_same_timestamp_keeps_insertion_order(self, issue_repo, test_session):
        issues = [create_issue(issue_repo, title=f"Issue {n}") for n in (1, 2, 3)]
        same_instant = datetime(2024, 1, 1, 8, 0, 0)
        for issue in issues:
            issue.created_at = same_instant
        test_session.flush()

        _, listed = issue_repo.list()

        assert [i.title for i in listed] == ["Issue 3", "Issue 2", "Issue 1"]

    def test_total_ignores_pagination(self, issue_repo, test_session):
        seed_ordered_issues(issue_repo, test_session, 7)

        total_small, page_small = issue_repo.list({}, page=1, limit=2)
        total_past_end, page_past_end = issue_repo.list({}, page=5, limit=2)

        assert total_small == total_past_end == 7
        assert len(page_small) == 2
        assert page_past_end == []

    def test_search_is_case_insensitive_or_over_text_fields(self, issue_repo):
        create_issue(issue_repo, title="Broken STREETLIGHT")
        create_issue(issue_repo, title="Noise", description="streetlight buzzing all night")
        create_issue(issue_repo, title="Tree", location="Streetlight Avenue 4")
        create_issue(issue_repo, title="Graffiti", description="On the bridge")

        total, issues = issue_repo.list({"search": "streetlight"})

        assert total == 3
        assert {i.title for i in issues} == {"Broken STREETLIGHT", "Noise", "Tree"}

    def test_search_treats_wildcards_literally(self, issue_repo):
        create_issue(issue_repo, title="100% blocked drain")
        create_issue(issue_repo, title="Blocked drain")

        total, issues = issue_repo.list({"search": "100%"})

        assert total == 1
        assert issues[0].title == "100% blocked drain"

    def test_exact_filters_combine(self, issue_repo):
        create_issue(issue_repo, title="Road A", category="Roads")
        create_issue(issue_repo, title="Road B", category="Roads", email="b@y.com")
        create_issue(issue_repo, title="Water", category="Water")
        resolved = create_issue(issue_repo, title="Road C", category="Roads")
        issue_repo.append_timeline(resolved.id, "Resolved", "Fixed", "admin@city.gov")

        total, issues = issue_repo.list(
            {"category": "Roads", "status": "Pending", "posted_by": "a@x.com"}
        )

        assert total == 1
        assert issues[0].title == "Road A"

    def test_posted_by_filter_is_normalized(self, issue_repo):
        create_issue(issue_repo, email="a@x.com")

        total, _ = issue_repo.list({"posted_by": "  A@X.com "})

        assert total == 1

    def test_unknown_filter_key_raises(self, issue_repo):
        with pytest.raises(ValueError, match="Unknown filter key"):
            issue_repo.list({"priority": "High"})

    def test_invalid_page_raises(self, issue_repo):
        with pytest.raises(ValueError):
            issue_repo.list({}, page=0, limit=10)


class TestUpdateAndDelete:
    """Tests for partial updates and deletion."""

    def test_update_merges_supplied_fields_only(self, issue_repo):
        issue = create_issue(issue_repo, description="Original", location="Main St")

        updated = issue_repo.update(issue.id, title="Big pothole")

        assert updated.title == "Big pothole"
        assert updated.description == "Original"
        assert updated.location == "Main St"
        assert updated.updated_at is not None

    @pytest.mark.parametrize("field", ["upvotes", "timeline", "upvoters", "status", "posted_by_email"])
    def test_update_refuses_protected_fields(self, issue_repo, field):
        issue = create_issue(issue_repo)

        with pytest.raises(ValueError, match="cannot be updated"):
            issue_repo.update(issue.id, **{field: 5})

    def test_update_missing_issue(self, issue_repo):
        with pytest.raises(IssueNotFound):
            issue_repo.update("f" * 32, title="x")

    def test_delete_removes_issue_and_children(self, issue_repo, test_session):
        issue = create_issue(issue_repo)
        issue_repo.add_upvote(issue.id, "b@y.com")

        assert issue_repo.delete(issue.id) is True

        assert test_session.query(Issue).count() == 0
        assert test_session.query(IssueTimelineEntry).count() == 0
        assert test_session.query(IssueUpvote).count() == 0

    def test_delete_missing_raises(self, issue_repo):
        with pytest.raises(IssueNotFound):
            issue_repo.delete("a" * 32)


class TestUpvoteWrites:
    """Tests for the repository-level upvote write."""

    def test_add_upvote_increments_counter_and_set(self, issue_repo):
        issue = create_issue(issue_repo)

        updated = issue_repo.add_upvote(issue.id, "b@y.com")

        assert updated.upvotes == 1
        assert updated.upvoted_users == ["b@y.com"]
        assert issue_repo.has_upvoted(issue.id, "b@y.com")

    def test_duplicate_voter_rejected_by_constraint(self, test_db):
        _, TestingSessionLocal, _ = test_db

        with TestingSessionLocal() as session:
            issue_id = create_issue(IssueRepository(session)).id
            IssueRepository(session).add_upvote(issue_id, "b@y.com")
            session.commit()

        with TestingSessionLocal() as session:
            repo = IssueRepository(session)
            with pytest.raises(AlreadyUpvoted):
                repo.add_upvote(issue_id, "b@y.com")

        with TestingSessionLocal() as session:
            issue = IssueRepository(session).get_by_id(issue_id)
            assert issue.upvotes == 1
            assert issue.upvoted_users == ["b@y.com"]

    def test_duplicate_keeps_earlier_work_in_transaction(self, test_db):
        _, TestingSessionLocal, _ = test_db

        with TestingSessionLocal() as session:
            voted_id = create_issue(IssueRepository(session)).id
            IssueRepository(session).add_upvote(voted_id, "b@y.com")
            session.commit()

        with TestingSessionLocal() as session:
            repo = IssueRepository(session)
            pending_id = create_issue(repo, title="Streetlight out").id
            with pytest.raises(AlreadyUpvoted):
                repo.add_upvote(voted_id, "b@y.com")
            session.commit()

        with TestingSessionLocal() as session:
            repo = IssueRepository(session)
            assert repo.get_by_id(pending_id).title == "Streetlight out"
            voted = repo.get_by_id(voted_id)
            assert voted.upvotes == 1
            assert voted.upvoted_users == ["b@y.com"]

    def test_add_upvote_missing_issue(self, issue_repo):
        with pytest.raises(IssueNotFound):
            issue_repo.add_upvote("b" * 32, "b@y.com")


class TestCounts:
    def test_count_by_status_includes_all_statuses(self, issue_repo):
        first = create_issue(issue_repo)
        create_issue(issue_repo)
        issue_repo.append_timeline(first.id, "InProgress", "Crew assigned", "admin@city.gov")

        counts = issue_repo.count_by_status()

        assert counts == {"Pending": 1, "InProgress": 1, "Resolved": 0, "Rejected": 0}

    def test_count_with_column_filter(self, issue_repo):
        create_issue(issue_repo, category="Roads")
        create_issue(issue_repo, category="Water")

        assert issue_repo.count() == 2
        assert issue_repo.count(category="Roads") == 1

    def test_count_unknown_filter_key_raises(self, issue_repo):
        with pytest.raises(ValueError, match="Unknown filter key"):
            issue_repo.count(typo_key=5)
