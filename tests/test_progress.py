"""Progress aggregation tests."""
import pytest

from errors import StoreError
from models.learning import Subject, SubjectType
from progress import compute_progress, percentage


def _subject(subject_id, title, grade="Grade 11"):
    return Subject(id=subject_id, title=title, target_grade=grade, subject_type=SubjectType.LESSON)


class FakeGateway:
    def __init__(self, totals, completed, broken=()):
        self.totals = totals
        self.completed = completed
        self.broken = set(broken)
        self.calls = []

    def count_lessons(self, subject_id):
        self.calls.append(("count", subject_id))
        if subject_id in self.broken:
            raise StoreError("connection reset by peer")
        return self.totals[subject_id]

    def list_completions(self, user_id, subject_id):
        self.calls.append(("completions", subject_id))
        return [object()] * self.completed.get((user_id, subject_id), 0)


class TestPercentage:
    def test_empty_subject_is_zero(self):
        assert percentage(0, 0) == 0

    def test_three_of_four(self):
        assert percentage(3, 4) == 75

    @pytest.mark.parametrize("completed,total,expected", [
        (1, 3, 33),
        (2, 3, 67),
        (1, 8, 13),  # 12.5 rounds up
        (1, 200, 1),  # 0.5 rounds up
        (4, 4, 100),
    ])
    def test_rounds_half_up(self, completed, total, expected):
        assert percentage(completed, total) == expected

    def test_always_between_0_and_100(self):
        for total in range(1, 30):
            for completed in range(0, total + 1):
                value = percentage(completed, total)
                assert 0 <= value <= 100

    def test_more_completions_than_lessons_is_capped(self):
        assert percentage(5, 4) == 100


class TestComputeProgress:
    def test_physics_scenario(self):
        gateway = FakeGateway({"phys": 4}, {("u1", "phys"): 3})
        [result] = compute_progress(gateway, "u1", [_subject("phys", "Physics")])

        assert result.title == "Physics"
        assert result.completed_count == 3
        assert result.total_lessons == 4
        assert result.percentage == 75
        assert result.error is None

    def test_preserves_input_order(self):
        subjects = [_subject("c", "Chemistry"), _subject("a", "Art"), _subject("b", "Biology")]
        gateway = FakeGateway({"a": 2, "b": 0, "c": 5}, {("u1", "c"): 5})

        results = compute_progress(gateway, "u1", subjects)

        assert [r.id for r in results] == ["c", "a", "b"]
        assert [r.percentage for r in results] == [100, 0, 0]

    def test_count_runs_before_completions_for_each_subject(self):
        gateway = FakeGateway({"a": 1, "b": 1}, {})
        compute_progress(gateway, "u1", [_subject("a", "A"), _subject("b", "B")])
        assert gateway.calls == [
            ("count", "a"), ("completions", "a"),
            ("count", "b"), ("completions", "b"),
        ]

    def test_failed_subject_is_marked_not_zeroed(self):
        subjects = [_subject("a", "Art"), _subject("b", "Biology"), _subject("c", "Chemistry")]
        gateway = FakeGateway({"a": 2, "c": 4}, {("u1", "a"): 1, ("u1", "c"): 4}, broken={"b"})

        art, biology, chemistry = compute_progress(gateway, "u1", subjects)

        assert biology.error == "connection reset by peer"
        assert biology.percentage is None
        assert biology.total_lessons is None
        assert art.percentage == 50
        assert chemistry.percentage == 100

    def test_other_users_completions_do_not_count(self):
        gateway = FakeGateway({"a": 2}, {("someone-else", "a"): 2})
        [result] = compute_progress(gateway, "u1", [_subject("a", "Art")])
        assert result.completed_count == 0
        assert result.percentage == 0

    def test_no_subjects(self):
        assert compute_progress(FakeGateway({}, {}), "u1", []) == []
