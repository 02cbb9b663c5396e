"""Test suite for the pipeline analytics engine.

Covers funnel conversions, velocity, weekly throughput, weighted pipeline,
the linear forecast, revenue cohorts and the combined report.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from sales_tracker.services.analytics import (
    AnalyticsReport,
    SalesAnalyzer,
    VelocityStats,
    WeeklyRevenue,
    compute_cohort_revenue,
    compute_forecast,
    compute_funnel,
    compute_throughput_by_week,
    compute_velocity_by_priority,
    compute_weighted_pipeline,
    days_between,
)
from sales_tracker.task import Priority, Task, TaskStatus

UTC = timezone.utc


def series(*values) -> List[WeeklyRevenue]:
    return [WeeklyRevenue(week=f"2024-W{i + 1:02d}", revenue=v) for i, v in enumerate(values)]


class TestFunnel:

    def test_counts_and_conversions(self):
        tasks = [
            Task(id="1", title="a", status=TaskStatus.TODO),
            Task(id="2", title="b", status=TaskStatus.TODO),
            Task(id="3", title="c", status=TaskStatus.IN_PROGRESS),
            Task(id="4", title="d", status=TaskStatus.IN_PROGRESS),
            Task(id="5", title="e", status=TaskStatus.DONE),
        ]

        funnel = compute_funnel(tasks)

        assert (funnel.todo, funnel.in_progress, funnel.done) == (2, 2, 1)
        assert funnel.conversion_todo_to_in_progress == pytest.approx(0.6)
        assert funnel.conversion_in_progress_to_done == pytest.approx(0.5)

    def test_zero_denominators(self):
        empty = compute_funnel([])
        assert empty.conversion_todo_to_in_progress == 0
        assert empty.conversion_in_progress_to_done == 0

        only_done = compute_funnel([Task(id="1", title="a", status=TaskStatus.DONE)])
        assert only_done.conversion_todo_to_in_progress == 1
        assert only_done.conversion_in_progress_to_done == 0

    @pytest.mark.parametrize("todo,in_progress", [(0, 3), (5, 1), (2, 2), (9, 0)])
    def test_first_conversion_within_unit_interval(self, todo, in_progress):
        tasks = (
            [Task(id=f"t{i}", title=f"t{i}", status=TaskStatus.TODO) for i in range(todo)]
            + [Task(id=f"p{i}", title=f"p{i}", status=TaskStatus.IN_PROGRESS) for i in range(in_progress)]
        )
        funnel = compute_funnel(tasks)
        assert 0 <= funnel.conversion_todo_to_in_progress <= 1


class TestVelocity:

    def test_days_between_rounds_and_floors(self):
        start = datetime(2024, 1, 1, tzinfo=UTC)
        assert days_between(start, start + timedelta(days=2, hours=12)) == 3
        assert days_between(start, start + timedelta(days=2, hours=11)) == 2
        assert days_between(start, start - timedelta(days=4)) == 0

    def test_mean_and_median_per_priority(self):
        created = datetime(2024, 1, 1, tzinfo=UTC)
        tasks = [
            Task(id="1", title="a", priority=Priority.HIGH, created_at=created,
                 completed_at=created + timedelta(days=1)),
            Task(id="2", title="b", priority=Priority.HIGH, created_at=created,
                 completed_at=created + timedelta(days=3)),
            Task(id="3", title="c", priority=Priority.LOW, created_at=created,
                 completed_at=created + timedelta(days=4)),
            # No completion date: ignored
            Task(id="4", title="d", priority=Priority.LOW, created_at=created),
        ]

        velocity = compute_velocity_by_priority(tasks)

        assert velocity[Priority.HIGH] == VelocityStats(avg_days=2, median_days=3)
        assert velocity[Priority.LOW] == VelocityStats(avg_days=4, median_days=4)
        assert velocity[Priority.MEDIUM] == VelocityStats(avg_days=0, median_days=0)


class TestThroughput:

    def test_buckets_by_iso_week_in_order(self):
        tasks = [
            Task(id="1", title="a", revenue=100, status=TaskStatus.DONE,
                 completed_at=datetime(2024, 3, 4, 10, tzinfo=UTC)),
            Task(id="2", title="b", revenue=50, status=TaskStatus.DONE,
                 completed_at=datetime(2024, 1, 2, tzinfo=UTC)),
            Task(id="3", title="c", revenue=25, status=TaskStatus.DONE,
                 completed_at=datetime(2024, 3, 10, 23, tzinfo=UTC)),
            Task(id="4", title="d", revenue=75, status=TaskStatus.DONE,
                 completed_at=datetime(2024, 2, 27, tzinfo=UTC)),
            Task(id="5", title="e", revenue=999, status=TaskStatus.TODO),
        ]

        weeks = compute_throughput_by_week(tasks)

        assert [(w.week, w.count, w.revenue) for w in weeks] == [
            ("2024-W01", 1, 50),
            ("2024-W09", 1, 75),
            ("2024-W10", 2, 125),
        ]

    def test_empty(self):
        assert compute_throughput_by_week([]) == []


class TestWeightedPipeline:

    def test_status_weights(self):
        tasks = [
            Task(id="1", title="a", revenue=1000, status=TaskStatus.TODO),
            Task(id="2", title="b", revenue=1000, status=TaskStatus.IN_PROGRESS),
            Task(id="3", title="c", revenue=1000, status=TaskStatus.DONE),
        ]

        assert compute_weighted_pipeline(tasks) == pytest.approx(1600)

    def test_empty(self):
        assert compute_weighted_pipeline([]) == 0


class TestForecast:

    def test_linear_series(self):
        forecast = compute_forecast(series(100, 200, 300, 400))

        assert [p.week for p in forecast] == ["+1", "+2", "+3", "+4"]
        assert forecast[0].revenue == pytest.approx(500)
        assert forecast[1].revenue == pytest.approx(600)

    def test_custom_horizon(self):
        assert len(compute_forecast(series(100, 200), horizon_weeks=2)) == 2

    def test_declining_series_floors_at_zero(self):
        forecast = compute_forecast(series(300, 200, 100))

        assert [p.revenue for p in forecast] == pytest.approx([0, 0, 0, 0])

    def test_flat_series(self):
        forecast = compute_forecast(series(50, 50))

        assert all(p.revenue == pytest.approx(50) for p in forecast)

    def test_too_few_points(self):
        assert compute_forecast(series(100)) == []
        assert compute_forecast([]) == []

    def test_accepts_throughput_rows(self):
        tasks = [
            Task(id=str(i), title=str(i), revenue=100 * (i + 1), status=TaskStatus.DONE,
                 completed_at=datetime(2024, 1, 1, tzinfo=UTC) + timedelta(weeks=i))
            for i in range(3)
        ]

        forecast = compute_forecast(compute_throughput_by_week(tasks), horizon_weeks=1)

        assert forecast[0].revenue == pytest.approx(400)


class TestCohorts:

    def test_groups_by_creation_week_and_priority(self):
        tasks = [
            Task(id="1", title="a", revenue=100, priority=Priority.HIGH,
                 created_at=datetime(2024, 3, 5, tzinfo=UTC)),
            Task(id="2", title="b", revenue=40, priority=Priority.HIGH,
                 created_at=datetime(2024, 3, 6, tzinfo=UTC)),
            Task(id="3", title="c", revenue=10, priority=Priority.LOW,
                 created_at=datetime(2024, 3, 6, tzinfo=UTC)),
            Task(id="4", title="d", revenue=70, priority=Priority.MEDIUM,
                 created_at=datetime(2024, 1, 3, tzinfo=UTC)),
        ]

        cohorts = compute_cohort_revenue(tasks)

        assert [(c.week, c.priority, c.revenue) for c in cohorts] == [
            ("2024-W01", Priority.MEDIUM, 70),
            ("2024-W10", Priority.HIGH, 140),
            ("2024-W10", Priority.LOW, 10),
        ]


class TestSalesAnalyzer:

    @pytest.fixture
    def sample_tasks(self) -> List[Task]:
        start = datetime(2024, 1, 1, tzinfo=UTC)
        tasks = []
        for week in range(4):
            tasks.append(Task(
                id=f"done-{week}",
                title=f"Closed deal {week}",
                revenue=100 * (week + 1),
                time_taken=2,
                priority=Priority.HIGH,
                status=TaskStatus.DONE,
                created_at=start + timedelta(weeks=week),
                completed_at=start + timedelta(weeks=week, days=2),
            ))
        tasks.append(Task(id="open", title="Open lead", revenue=1000, status=TaskStatus.TODO,
                          created_at=start))
        return tasks

    def test_report_contents(self, sample_tasks):
        report = SalesAnalyzer().analyze(sample_tasks)

        assert isinstance(report, AnalyticsReport)
        assert report.task_count == 5
        assert report.funnel.done == 4
        assert len(report.throughput) == 4
        assert report.forecast[0].revenue == pytest.approx(500)
        assert report.weighted_pipeline == pytest.approx(1100)
        assert report.velocity[Priority.HIGH].avg_days == 2

    def test_horizon_override(self, sample_tasks):
        analyzer = SalesAnalyzer(horizon_weeks=2)

        assert len(analyzer.analyze(sample_tasks).forecast) == 2
        assert len(analyzer.analyze(sample_tasks, horizon_weeks=6).forecast) == 6

    def test_report_serializes_to_json(self, sample_tasks):
        data = json.loads(json.dumps(SalesAnalyzer().analyze(sample_tasks).to_dict()))

        assert data["task_count"] == 5
        assert set(data["velocity"]) == {"High", "Medium", "Low"}
        assert data["cohorts"][0]["priority"] in {"High", "Medium", "Low"}

    def test_does_not_mutate_input(self, sample_tasks):
        before = [t.to_dict() for t in sample_tasks]

        SalesAnalyzer().analyze(sample_tasks)

        assert [t.to_dict() for t in sample_tasks] == before
