"""Tests for core task logic."""

from datetime import datetime, timedelta, timezone

import pytest

from atelier.core.todos import (
    AllView,
    ClientView,
    LabelView,
    Priority,
    PriorityView,
    ProjectView,
    Recurrence,
    SortOption,
    Subtask,
    Task,
    TodayView,
    UpcomingView,
    build_successor,
    filter_tasks,
    group_subtasks,
    label_names,
    matches_view,
    needs_successor,
    next_due_date,
    next_sort_order,
    parse_view,
    quick_add_task,
    sort_tasks,
    task_stats,
    visible_tasks,
    with_association_names,
)

ALL_VIEWS = [
    AllView(),
    TodayView(),
    UpcomingView(),
    PriorityView(Priority.HIGH),
    PriorityView(Priority.LOW),
    ProjectView("p1"),
    ClientView("c1"),
    LabelView("bug"),
]


# Fixtures
@pytest.fixture
def now():
    return datetime(2024, 3, 5, 10, 0)


@pytest.fixture
def sample_tasks(now):
    """Sample tasks covering various scenarios."""
    return [
        Task(
            id="1",
            title="Send invoice",
            priority=Priority.HIGH,
            due_date=datetime(2024, 3, 5, 0, 0),
            client_id="c1",
            client_name="Acme Corp",
            created_at=now - timedelta(days=3),
        ),
        Task(
            id="2",
            title="Call back",
            description="About the Logo revisions",
            priority=Priority.LOW,
            due_date=datetime(2024, 3, 5, 23, 0),
            project_id="p1",
            project_name="Website Redesign",
            labels=["meeting"],
            created_at=now - timedelta(days=1),
        ),
        Task(
            id="3",
            title="Fix checkout bug",
            priority=Priority.MEDIUM,
            due_date=datetime(2024, 3, 6, 0, 0),
            project_id="p1",
            project_name="Website Redesign",
            labels=["bug", "development"],
            created_at=now - timedelta(days=2),
        ),
        Task(
            id="4",
            title="Archive old files",
            priority=Priority.LOW,
            due_date=None,
            created_at=now - timedelta(days=5),
        ),
        Task(
            id="5",
            title="Draft proposal",
            priority=Priority.HIGH,
            due_date=datetime(2024, 3, 1, 9, 0),
            completed=True,
            client_id="c1",
            client_name="Acme Corp",
            created_at=now,
        ),
        Task(
            id="6",
            title="Quarterly taxes",
            priority=Priority.MEDIUM,
            due_date=datetime(2024, 4, 15, 0, 0),
            created_at=None,
        ),
    ]


def ids(tasks):
    return [t.id for t in tasks]


class TestViews:
    def test_all_includes_completed(self, sample_tasks, now):
        assert ids(filter_tasks(sample_tasks, AllView(), now=now)) == ["1", "2", "3", "4", "5", "6"]

    def test_today_compares_calendar_dates(self, sample_tasks, now):
        assert ids(filter_tasks(sample_tasks, TodayView(), now=now)) == ["1", "2"]

    def test_upcoming_is_after_end_of_today(self, sample_tasks, now):
        assert ids(filter_tasks(sample_tasks, UpcomingView(), now=now)) == ["3", "6"]

    def test_upcoming_excludes_last_moment_of_today(self, now):
        task = Task(id="x", title="Late", due_date=datetime(2024, 3, 5, 23, 59, 59, 999000))
        assert not matches_view(task, UpcomingView(), now)

    def test_priority(self, sample_tasks, now):
        assert ids(filter_tasks(sample_tasks, PriorityView(Priority.HIGH), now=now)) == ["1", "5"]

    def test_project(self, sample_tasks, now):
        assert ids(filter_tasks(sample_tasks, ProjectView("p1"), now=now)) == ["2", "3"]

    def test_client(self, sample_tasks, now):
        assert ids(filter_tasks(sample_tasks, ClientView("c1"), now=now)) == ["1", "5"]

    def test_label(self, sample_tasks, now):
        assert ids(filter_tasks(sample_tasks, LabelView("bug"), now=now)) == ["3"]

    def test_empty_collection(self, now):
        for view in ALL_VIEWS:
            assert filter_tasks([], view, "anything", now) == []

    @pytest.mark.parametrize("view", ALL_VIEWS)
    def test_output_is_exactly_the_matching_tasks(self, sample_tasks, now, view):
        shown = filter_tasks(sample_tasks, view, now=now)
        expected = [t for t in sample_tasks if matches_view(t, view, now)]
        assert shown == expected

    def test_missing_optional_fields(self, now):
        bare = Task(id="b", title="Bare", labels=None)
        for view in ALL_VIEWS:
            filter_tasks([bare], view, "bare", now)


class TestSearch:
    def test_title_case_insensitive(self, sample_tasks, now):
        assert ids(filter_tasks(sample_tasks, AllView(), "INVOICE", now)) == ["1"]

    def test_description(self, sample_tasks, now):
        assert ids(filter_tasks(sample_tasks, AllView(), "logo", now)) == ["2"]

    def test_client_name(self, sample_tasks, now):
        assert ids(filter_tasks(sample_tasks, AllView(), "acme", now)) == ["1", "5"]

    def test_project_name(self, sample_tasks, now):
        assert ids(filter_tasks(sample_tasks, AllView(), "redesign", now)) == ["2", "3"]

    def test_search_then_view(self, sample_tasks, now):
        assert ids(filter_tasks(sample_tasks, TodayView(), "acme", now)) == ["1"]

    def test_no_match(self, sample_tasks, now):
        assert filter_tasks(sample_tasks, AllView(), "zzz", now) == []


class TestSorting:
    def test_due_date_undated_last(self, sample_tasks):
        assert ids(sort_tasks(sample_tasks, SortOption.DUE_DATE)) == ["1", "2", "3", "6", "4", "5"]

    def test_priority_high_first(self, sample_tasks):
        assert ids(sort_tasks(sample_tasks, SortOption.PRIORITY)) == ["1", "3", "6", "2", "4", "5"]

    def test_created_at_newest_first(self, sample_tasks):
        assert ids(sort_tasks(sample_tasks, SortOption.CREATED_AT)) == ["2", "3", "1", "4", "6", "5"]

    def test_title(self, sample_tasks):
        assert ids(sort_tasks(sample_tasks, SortOption.TITLE)) == ["4", "2", "3", "6", "1", "5"]

    @pytest.mark.parametrize("option", list(SortOption))
    def test_completed_always_last(self, sample_tasks, option):
        for task in sample_tasks[:3]:
            task.completed = True
        result = sort_tasks(sample_tasks, option)
        flags = [t.completed for t in result]
        assert flags == sorted(flags)

    @pytest.mark.parametrize("option", list(SortOption))
    def test_resorting_is_stable(self, sample_tasks, option):
        once = sort_tasks(sample_tasks, option)
        assert sort_tasks(once, option) == once

    def test_ties_keep_input_order(self):
        tasks = [Task(id=str(i), title="Same", priority=Priority.LOW) for i in range(5)]
        assert ids(sort_tasks(tasks, SortOption.PRIORITY)) == ["0", "1", "2", "3", "4"]

    def test_does_not_mutate_input(self, sample_tasks):
        before = ids(sample_tasks)
        sort_tasks(sample_tasks, SortOption.TITLE)
        assert ids(sample_tasks) == before

    def test_visible_tasks(self, sample_tasks, now):
        shown = visible_tasks(sample_tasks, ClientView("c1"), "", SortOption.PRIORITY, now)
        assert ids(shown) == ["1", "5"]


class TestParseView:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("all", AllView()),
            ("Today", TodayView()),
            ("upcoming", UpcomingView()),
            ("high", PriorityView(Priority.HIGH)),
            ("priority:low", PriorityView(Priority.LOW)),
            ("project:abc-123", ProjectView("abc-123")),
            ("client:c1", ClientView("c1")),
            ("label:bug", LabelView("bug")),
            ("label:Design", LabelView("design")),
        ],
    )
    def test_parse(self, text, expected):
        assert parse_view(text) == expected

    @pytest.mark.parametrize("text", ["someday", "project:", "priority:urgent", "label:someday"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_view(text)


class TestRecurrence:
    def test_daily(self):
        assert next_due_date(datetime(2024, 12, 31), Recurrence.DAILY) == datetime(2025, 1, 1)

    def test_weekly(self):
        assert next_due_date(datetime(2024, 1, 10), Recurrence.WEEKLY) == datetime(2024, 1, 17)

    def test_monthly_preserves_day(self):
        assert next_due_date(datetime(2024, 1, 15), Recurrence.MONTHLY) == datetime(2024, 2, 15)

    def test_monthly_clamps_to_leap_day(self):
        assert next_due_date(datetime(2024, 1, 31), Recurrence.MONTHLY) == datetime(2024, 2, 29)

    def test_monthly_clamps_in_common_year(self):
        assert next_due_date(datetime(2023, 1, 31), Recurrence.MONTHLY) == datetime(2023, 2, 28)

    def test_monthly_crosses_year(self):
        assert next_due_date(datetime(2024, 12, 15, 9, 30), Recurrence.MONTHLY) == datetime(2025, 1, 15, 9, 30)

    def test_none(self):
        assert next_due_date(datetime(2024, 1, 10), Recurrence.NONE) is None

    def test_weekly_successor_copies_fields(self):
        original = Task(
            id="t1",
            title="Status report",
            description="Send weekly update",
            priority=Priority.HIGH,
            due_date=datetime(2024, 1, 10),
            completed=True,
            recurring=Recurrence.WEEKLY,
            labels=["review"],
            client_id="c1",
            client_name="Acme Corp",
            project_id="p1",
            project_name="Retainer",
            subtasks=[Subtask(id="s1", todo_id="t1", title="Collect numbers")],
            created_at=datetime(2024, 1, 1),
        )
        successor = build_successor(original)

        assert successor.id is None
        assert successor.completed is False
        assert successor.due_date == datetime(2024, 1, 17)
        assert successor.subtasks == []
        assert successor.created_at is None
        for name in (
            "title",
            "description",
            "priority",
            "recurring",
            "labels",
            "client_id",
            "client_name",
            "project_id",
            "project_name",
        ):
            assert getattr(successor, name) == getattr(original, name)
        assert successor.labels is not original.labels
        # original stays a completed record
        assert original.completed is True
        assert original.due_date == datetime(2024, 1, 10)

    def test_non_recurring_has_no_successor(self):
        with pytest.raises(ValueError):
            build_successor(Task(id="t", title="Once", due_date=datetime(2024, 1, 10)))

    def test_needs_successor_on_completion(self):
        task = Task(id="t", title="R", due_date=datetime(2024, 1, 10), completed=True, recurring=Recurrence.DAILY)
        assert needs_successor(task, was_completed=False) is True

    def test_no_successor_when_already_completed(self):
        task = Task(id="t", title="R", due_date=datetime(2024, 1, 10), completed=True, recurring=Recurrence.DAILY)
        assert needs_successor(task, was_completed=True) is False

    def test_no_successor_when_reopened(self):
        task = Task(id="t", title="R", due_date=datetime(2024, 1, 10), completed=False, recurring=Recurrence.DAILY)
        assert needs_successor(task, was_completed=True) is False

    def test_no_successor_without_due_date(self):
        task = Task(id="t", title="R", completed=True, recurring=Recurrence.WEEKLY)
        assert needs_successor(task, was_completed=False) is False


class TestStats:
    def test_counts(self, sample_tasks, now):
        stats = task_stats(sample_tasks, now)
        assert stats.pending == 5
        assert stats.completed == 1
        # Task 1 is due at midnight today, earlier than 10:00
        assert stats.overdue == 1
        assert stats.due_today == 2

    def test_empty(self, now):
        stats = task_stats([], now)
        assert (stats.pending, stats.completed, stats.overdue, stats.due_today) == (0, 0, 0, 0)


class TestQuickAdd:
    def test_defaults(self, now):
        task = quick_add_task("  Email Budi  ", AllView(), now)
        assert task.title == "Email Budi"
        assert task.priority is Priority.MEDIUM
        assert task.recurring is Recurrence.NONE
        assert task.labels == []
        assert task.completed is False
        assert task.due_date is None

    def test_project_view_prefills_project(self, now):
        assert quick_add_task("x", ProjectView("p9"), now).project_id == "p9"

    def test_client_view_prefills_client(self, now):
        assert quick_add_task("x", ClientView("c9"), now).client_id == "c9"

    def test_today_view_prefills_due_date(self, now):
        assert quick_add_task("x", TodayView(), now).due_date == now

    def test_blank_title(self, now):
        with pytest.raises(ValueError):
            quick_add_task("   ", AllView(), now)

    def test_association_names(self):
        task = Task(id=None, title="x", client_id="c1", project_id="p404")
        named = with_association_names(task, {"c1": "Acme Corp"}, {"p1": "Site"})
        assert named.client_name == "Acme Corp"
        assert named.project_name is None


class TestSubtasks:
    def test_first_subtask_order(self):
        assert next_sort_order([]) == 0

    def test_after_max(self):
        subtasks = [
            Subtask(id="a", todo_id="t", title="a", sort_order=4),
            Subtask(id="b", todo_id="t", title="b", sort_order=1),
        ]
        assert next_sort_order(subtasks) == 5

    def test_progress(self):
        task = Task(
            id="t",
            title="t",
            subtasks=[
                Subtask(id="a", todo_id="t", title="a", completed=True),
                Subtask(id="b", todo_id="t", title="b"),
            ],
        )
        assert task.subtask_progress() == (1, 2)

    def test_group_by_task(self):
        grouped = group_subtasks(
            [
                Subtask(id="a", todo_id="t1", title="a", sort_order=2),
                Subtask(id="b", todo_id="t2", title="b", sort_order=0),
                Subtask(id="c", todo_id="t1", title="c", sort_order=1),
            ]
        )
        assert [s.id for s in grouped["t1"]] == ["c", "a"]
        assert [s.id for s in grouped["t2"]] == ["b"]


class TestRows:
    def test_from_row(self):
        task = Task.from_row(
            {
                "id": "abc",
                "title": "Review contract",
                "priority": "high",
                "due_date": "2024-03-05",
                "completed": False,
                "recurring": None,
                "labels": None,
                "created_at": "2024-03-01T03:00:00+00:00",
            },
            tz=timezone(timedelta(hours=7)),
        )
        assert task.priority is Priority.HIGH
        assert task.due_date == datetime(2024, 3, 5)
        assert task.recurring is Recurrence.NONE
        assert task.labels == []
        assert task.created_at == datetime(2024, 3, 1, 10, 0)

    def test_to_row_date_only_at_midnight(self):
        row = Task(id="x", title="T", due_date=datetime(2024, 3, 5)).to_row()
        assert row["due_date"] == "2024-03-05"
        assert "id" not in row

    def test_to_row_keeps_time(self):
        row = Task(id="x", title="T", due_date=datetime(2024, 3, 5, 14, 30)).to_row()
        assert row["due_date"] == "2024-03-05T14:30:00"

    def test_to_row_attaches_zone(self):
        jakarta = timezone(timedelta(hours=7))
        row = Task(id="x", title="T", due_date=datetime(2024, 3, 5, 20, 0)).to_row(jakarta)
        assert row["due_date"] == "2024-03-05T20:00:00+07:00"

    def test_zoned_due_date_reads_back_same_day(self):
        jakarta = timezone(timedelta(hours=7))
        now = datetime(2024, 3, 5, 20, 0)
        task = quick_add_task("Call Acme", TodayView(), now)
        # The store hands the timestamp back in UTC
        stored = datetime.fromisoformat(task.to_row(jakarta)["due_date"]).astimezone(timezone.utc)
        back = Task.from_row({"id": "n1", "title": "Call Acme", "due_date": stored.isoformat()}, tz=jakarta)
        assert back.due_date == now
        assert matches_view(back, TodayView(), now)

    def test_to_row_midnight_stays_date_only_with_zone(self):
        row = Task(id="x", title="T", due_date=datetime(2024, 3, 5)).to_row(timezone.utc)
        assert row["due_date"] == "2024-03-05"

    def test_unknown_enum_values_fall_back(self, caplog):
        task = Task.from_row({"id": "odd", "title": "Legacy", "priority": "urgent", "recurring": "yearly"})
        assert task.priority is Priority.MEDIUM
        assert task.recurring is Recurrence.NONE
        assert "Unknown priority 'urgent'" in caplog.text


class TestLabels:
    def test_catalogue_names(self):
        assert label_names(["bug", "feature"]) == ["Bug", "Feature"]

    def test_unknown_id_shown_raw(self):
        assert label_names(["client-x"]) == ["client-x"]
