"""Unit tests for the credential store."""
import pytest

from educonnect.core.errors import Conflict, Forbidden, NotFound, Unauthorized
from educonnect.domain.user import LoginRequest, ProfileUpdate, RegisterRequest, UserType
from educonnect.services.accounts import claims_for


def make_request(email="asha@example.com", user_type="student", **extra):
    body = {"email": email, "password": "secret123", "name": "Asha Kumar", "userType": user_type}
    body.update(extra)
    return RegisterRequest(**body)


@pytest.fixture
def student(credential_store):
    result = credential_store.register(make_request())
    return credential_store.get_by_email(result.user.email)


@pytest.fixture
def parent(credential_store):
    result = credential_store.register(make_request(email="parent@example.com", user_type="parent"))
    return credential_store.get_by_email(result.user.email)


class TestRegistration:
    """Test account creation."""

    def test_register_student_defaults(self, credential_store, token_service):
        result = credential_store.register(make_request())
        user = result.user

        assert user.user_type == UserType.STUDENT
        assert user.avatar == "AK"
        assert user.student_id.startswith("S")
        assert len(user.student_id) == 10
        assert user.student_class == 10
        assert user.performance == {"math": 0, "science": 0, "english": 0}
        assert user.attendance == 0
        assert user.reward_points == 0
        assert user.vocational_courses == []
        assert user.children is None
        assert token_service.verify(result.token).user_id == user.id

    def test_register_student_with_code_and_class(self, credential_store):
        result = credential_store.register(make_request(studentId="S777", studentClass=8))

        assert result.user.student_id == "S777"
        assert result.user.student_class == 8

    def test_register_long_name_caps_avatar(self, credential_store):
        result = credential_store.register(make_request(name="Ada Bo Cy Di Ed Fa Gi Ho Iv Jo Ka Lu"))

        assert result.user.avatar == "ABCDEFGHIJ"

    def test_register_parent_has_no_student_fields(self, credential_store):
        result = credential_store.register(make_request(user_type="parent"))
        wire = result.user.to_wire()

        assert wire["userType"] == "parent"
        assert wire["children"] == []
        assert "studentId" not in wire
        assert "performance" not in wire

    def test_profile_never_exposes_password(self, credential_store):
        wire = credential_store.register(make_request()).user.to_wire()

        assert "password" not in wire
        assert "passwordHash" not in wire
        assert "password_hash" not in wire

    def test_duplicate_email_conflicts(self, credential_store):
        credential_store.register(make_request())

        with pytest.raises(Conflict) as exc_info:
            credential_store.register(make_request(user_type="parent"))

        assert exc_info.value.status_code == 409
        assert exc_info.value.message == "User already exists with this email"


class TestLogin:
    """Test credential checks."""

    def test_login_success(self, credential_store, student, token_service):
        result = credential_store.login(LoginRequest(email="asha@example.com", password="secret123"))

        assert result.user.id == student.id
        assert token_service.verify(result.token).email == "asha@example.com"

    def test_login_with_matching_role(self, credential_store, student):
        result = credential_store.login(
            LoginRequest(email="asha@example.com", password="secret123", userType="student")
        )

        assert result.user.user_type == UserType.STUDENT

    def test_login_wrong_password(self, credential_store, student):
        with pytest.raises(Unauthorized) as exc_info:
            credential_store.login(LoginRequest(email="asha@example.com", password="wrong"))

        assert exc_info.value.message == "Invalid email or password"

    def test_login_unknown_email(self, credential_store):
        with pytest.raises(Unauthorized) as exc_info:
            credential_store.login(LoginRequest(email="nobody@example.com", password="secret123"))

        assert exc_info.value.message == "Invalid email or password"

    def test_login_role_mismatch(self, credential_store, student):
        with pytest.raises(Unauthorized) as exc_info:
            credential_store.login(
                LoginRequest(email="asha@example.com", password="secret123", userType="parent")
            )

        assert exc_info.value.message == "Account is not a parent account"


class TestProfile:
    """Test profile reads and updates."""

    def test_get_profile_unknown_user(self, credential_store):
        with pytest.raises(NotFound):
            credential_store.get_profile("nobody@example.com")

    def test_update_name_refreshes_avatar(self, credential_store, student):
        profile = credential_store.update_profile(student.email, ProfileUpdate(name="Rahul Singh"))

        assert profile.name == "Rahul Singh"
        assert profile.avatar == "RS"

    def test_long_name_avatar_fits_column(self, credential_store, student):
        name = "Ada Bo Cy Di Ed Fa Gi Ho Iv Jo Ka Lu"

        profile = credential_store.update_profile(student.email, ProfileUpdate(name=name))

        assert profile.avatar == "ABCDEFGHIJ"

    def test_update_student_class(self, credential_store, student):
        profile = credential_store.update_profile(student.email, ProfileUpdate(studentClass=11))

        assert profile.student_class == 11

    def test_update_without_changes_is_not_found(self, credential_store, student):
        with pytest.raises(NotFound) as exc_info:
            credential_store.update_profile(student.email, ProfileUpdate())

        assert exc_info.value.message == "User not found or no changes made"

    def test_parent_class_update_is_ignored(self, credential_store, parent):
        with pytest.raises(NotFound):
            credential_store.update_profile(parent.email, ProfileUpdate(studentClass=9))

    def test_list_students_only_returns_students(self, credential_store, student, parent):
        students = credential_store.list_students()

        assert [s.email for s in students] == [student.email]


class TestVocationalCourses:
    """Test course enrollment and progress."""

    def test_register_course(self, credential_store, student):
        enrollment, created = credential_store.register_vocational_course(
            claims_for(student), "C1", "Carpentry"
        )

        assert created is True
        assert enrollment.course_id == "C1"
        assert enrollment.progress == 0
        assert enrollment.completed is False

    def test_register_course_twice_is_idempotent(self, credential_store, student):
        credential_store.register_vocational_course(claims_for(student), "C1", "Carpentry")
        _, created = credential_store.register_vocational_course(claims_for(student), "C1", "Carpentry")

        courses = credential_store.list_vocational_courses(claims_for(student))
        assert created is False
        assert len(courses) == 1

    def test_parent_cannot_register_course(self, credential_store, parent):
        with pytest.raises(Forbidden) as exc_info:
            credential_store.register_vocational_course(claims_for(parent), "C1", "Carpentry")

        assert exc_info.value.message == "Only students can register for vocational courses"

    def test_parent_cannot_list_courses(self, credential_store, parent):
        with pytest.raises(Forbidden) as exc_info:
            credential_store.list_vocational_courses(claims_for(parent))

        assert exc_info.value.message == "Only students can access vocational courses"

    def test_list_courses_in_registration_order(self, credential_store, student):
        credential_store.register_vocational_course(claims_for(student), "C1", "Carpentry")
        credential_store.register_vocational_course(claims_for(student), "C2", "Plumbing")

        courses = credential_store.list_vocational_courses(claims_for(student))

        assert [c.course_id for c in courses] == ["C1", "C2"]

    def test_update_progress(self, credential_store, student):
        credential_store.register_vocational_course(claims_for(student), "C1", "Carpentry")

        course = credential_store.update_course_progress(student.id, "C1", 40)

        assert course.progress == 40
        assert course.completed is False

    def test_progress_is_clamped_and_completes(self, credential_store, student):
        credential_store.register_vocational_course(claims_for(student), "C1", "Carpentry")

        high = credential_store.update_course_progress(student.id, "C1", 150)
        assert high.progress == 100
        assert high.completed is True

        low = credential_store.update_course_progress(student.id, "C1", -5)
        assert low.progress == 0
        assert low.completed is False

    def test_update_progress_unknown_course(self, credential_store, student):
        credential_store.register_vocational_course(claims_for(student), "C1", "Carpentry")
        before = credential_store.list_vocational_courses(claims_for(student))

        with pytest.raises(NotFound) as exc_info:
            credential_store.update_course_progress(student.id, "missing", 10)

        assert exc_info.value.message == "Course not found"
        after = credential_store.list_vocational_courses(claims_for(student))
        assert [(c.course_id, c.progress, c.last_accessed) for c in after] == [
            ("C1", 0, before[0].last_accessed)
        ]


class TestSampleData:
    """Test demo account seeding."""

    def test_seed_creates_sample_accounts_once(self, credential_store):
        assert credential_store.seed_sample_data() is True
        assert credential_store.seed_sample_data() is False

        student = credential_store.find_student("S123")
        parent = credential_store.get_by_email("parent@educonnect.com")

        assert student.email == "student@educonnect.com"
        assert student.performance == {"math": 85, "science": 78, "english": 92}
        assert student.reward_points == 1250
        assert parent.children == ["S123"]

    def test_seeded_student_can_log_in(self, credential_store):
        credential_store.seed_sample_data()

        result = credential_store.login(
            LoginRequest(email="student@educonnect.com", password="student123", userType="student")
        )

        assert result.user.student_id == "S123"

    def test_seed_skipped_when_users_exist(self, credential_store, student):
        assert credential_store.seed_sample_data() is False
