"""Data access gateway tests against an in-memory SQLite store."""
import pytest

from conftest import make_user
from errors import AuthError, StoreError, UniquenessViolation
from gateway import DataGateway
from models import schema
from models.learning import LessonCreate, Role, SubjectCreate, SubjectType


@pytest.fixture
def admin_gw(db):
    gateway, _ = make_user(db, "admin@school.edu", grade="Staff", role="admin")
    return gateway


@pytest.fixture
def student(db):
    return make_user(db, "kid@school.edu", grade="Grade 11")


class TestIdentity:
    def test_no_token_means_no_user(self, db):
        assert DataGateway(db).get_current_user() is None

    def test_garbage_token_means_no_user(self, db):
        assert DataGateway(db, access_token="not-a-jwt").get_current_user() is None

    def test_sign_in_and_current_user(self, db, student):
        _, identity = student
        gateway = DataGateway(db)
        token = gateway.sign_in("kid@school.edu", "s3cret-pass")

        assert token.user_id == identity.id
        assert DataGateway(db, access_token=token.access_token).get_current_user().id == identity.id

    def test_wrong_password(self, db, student):
        with pytest.raises(AuthError, match="Invalid login credentials"):
            DataGateway(db).sign_in("kid@school.edu", "nope")

    def test_duplicate_sign_up(self, db, student):
        with pytest.raises(StoreError, match="User already registered"):
            DataGateway(db).sign_up("kid@school.edu", "whatever")

    def test_sign_out_revokes_token(self, db, student):
        gateway, _ = student
        token = gateway.access_token
        gateway.sign_out()

        assert gateway.access_token is None
        assert DataGateway(db, access_token=token).get_current_user() is None

    def test_profile_is_always_student(self, db, student):
        _, identity = student
        profile = DataGateway(db).get_profile(identity.id)
        assert profile.role == Role.STUDENT
        assert profile.grade == "Grade 11"
        assert profile.full_name == "Test User"

    def test_cannot_create_someone_elses_profile(self, db, student):
        gateway, _ = student
        with pytest.raises(StoreError) as exc_info:
            gateway.insert_profile("another-user", "Mallory", "Grade 12")
        assert exc_info.value.code == "42501"


class TestSubjectsAndLessons:
    def test_list_subjects_ordered_by_title(self, admin_gw):
        for title in ["Physics", "Biology", "Chemistry"]:
            admin_gw.insert_subject(SubjectCreate(title=title, target_grade="Grade 11"))

        assert [s.title for s in admin_gw.list_subjects()] == ["Biology", "Chemistry", "Physics"]

    def test_list_subjects_by_grade(self, admin_gw):
        admin_gw.insert_subject(SubjectCreate(title="Physics", target_grade="Grade 11"))
        admin_gw.insert_subject(SubjectCreate(title="Algebra", target_grade="Grade 10"))

        assert [s.title for s in admin_gw.list_subjects(target_grade="Grade 10")] == ["Algebra"]

    def test_student_write_is_rejected_by_the_store(self, db, student):
        gateway, _ = student
        with pytest.raises(StoreError, match="row-level security"):
            gateway.insert_subject(SubjectCreate(title="Sneaky", target_grade="Grade 11"))
        assert db.query(schema.Subject).count() == 0

    def test_lessons_counted_listed_and_joined(self, admin_gw):
        physics = admin_gw.insert_subject(SubjectCreate(title="Physics", target_grade="Grade 11"))
        first = admin_gw.insert_lesson(physics.id, LessonCreate(title="Motion", content="..."))
        admin_gw.insert_lesson(physics.id, LessonCreate(title="Forces", content="..."))

        assert admin_gw.count_lessons(physics.id) == 2
        assert [l.title for l in admin_gw.list_lessons(physics.id)] == ["Motion", "Forces"]

        detail = admin_gw.get_lesson(first.id)
        assert detail.subject_title == "Physics"
        assert detail.subject_id == physics.id

    def test_missing_lesson(self, admin_gw):
        assert admin_gw.get_lesson("nope") is None

    def test_count_for_empty_subject(self, admin_gw):
        bio = admin_gw.insert_subject(SubjectCreate(title="Biology", target_grade="Grade 10", subject_type=SubjectType.VIDEO))
        assert admin_gw.count_lessons(bio.id) == 0

    def test_delete_subject_cascades(self, db, admin_gw):
        physics = admin_gw.insert_subject(SubjectCreate(title="Physics", target_grade="Grade 11"))
        admin_gw.insert_lesson(physics.id, LessonCreate(title="Motion", content="..."))

        admin_gw.delete_subject(physics.id)

        assert admin_gw.get_subject(physics.id) is None
        assert db.query(schema.Lesson).count() == 0


class TestCompletions:
    @pytest.fixture
    def lessons(self, admin_gw):
        physics = admin_gw.insert_subject(SubjectCreate(title="Physics", target_grade="Grade 11"))
        art = admin_gw.insert_subject(SubjectCreate(title="Art", target_grade="Grade 11"))
        return (
            physics,
            admin_gw.insert_lesson(physics.id, LessonCreate(title="Motion", content="...")),
            admin_gw.insert_lesson(art.id, LessonCreate(title="Colour", content="...")),
        )

    def test_completions_are_scoped_to_subject(self, student, lessons):
        gateway, identity = student
        physics, motion, colour = lessons
        gateway.insert_completion(identity.id, motion.id)
        gateway.insert_completion(identity.id, colour.id)

        records = gateway.list_completions(identity.id, physics.id)
        assert [r.lesson_id for r in records] == [motion.id]

    def test_duplicate_is_a_uniqueness_violation(self, db, student, lessons):
        gateway, identity = student
        _, motion, _ = lessons
        gateway.insert_completion(identity.id, motion.id)

        with pytest.raises(UniquenessViolation) as exc_info:
            gateway.insert_completion(identity.id, motion.id)
        assert exc_info.value.code == "23505"
        assert db.query(schema.LessonProgress).count() == 1

    def test_cannot_complete_for_another_user(self, db, student, lessons):
        gateway, _ = student
        _, motion, _ = lessons
        with pytest.raises(StoreError, match="lesson_progress"):
            gateway.insert_completion("someone-else", motion.id)
        assert db.query(schema.LessonProgress).count() == 0

    def test_unknown_lesson_is_a_store_error(self, student):
        gateway, identity = student
        with pytest.raises(StoreError) as exc_info:
            gateway.insert_completion(identity.id, "missing-lesson")
        assert not isinstance(exc_info.value, UniquenessViolation)
