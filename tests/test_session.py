"""
LessonSession tests: navigation, completion callbacks and late data.
"""

import pytest

from conftest import make_quiz, make_step

from aiplayground.classroom import LOADING_STEP, LessonSession, open_lesson


@pytest.fixture
def steps():
    return [make_step("s1"), make_step("s2", make_quiz(correct_index=1)), make_step("s3")]


class TestNavigation:
    """Test index clamping and derived flags."""

    def test_go_next_clamps(self, steps):
        session = LessonSession(steps, "vectors")
        assert session.go_next() == 1
        assert session.go_next() == 2
        assert session.go_next() == 2
        assert session.is_last_step
        assert not session.can_go_next

    def test_go_back_clamps(self, steps):
        session = LessonSession(steps, "vectors", initial_step_index=1)
        assert session.go_back() == 0
        assert session.go_back() == 0
        assert session.is_first_step
        assert not session.can_go_back

    def test_go_to_step_ignores_out_of_range(self, steps):
        session = LessonSession(steps, "vectors")
        assert session.go_to_step(2) == 2
        assert session.go_to_step(3) == 2
        assert session.go_to_step(-1) == 2
        assert session.current_step.id == "s3"

    def test_initial_index_clamped(self, steps):
        assert LessonSession(steps, "vectors", initial_step_index=10).current_index == 2

    def test_middle_step_flags(self, steps):
        session = LessonSession(steps, "vectors", initial_step_index=1)
        assert not session.is_first_step
        assert not session.is_last_step
        assert session.can_go_next
        assert session.can_go_back
        assert session.total_steps == 3

    def test_arrow_keys(self, steps):
        session = LessonSession(steps, "vectors")
        assert session.handle_key("ArrowRight")
        assert session.handle_key("ArrowDown")
        assert session.current_index == 2
        assert session.handle_key("ArrowUp")
        assert session.current_index == 1
        assert session.handle_key("ArrowLeft")
        assert session.current_index == 0

    def test_arrow_keys_ignored_in_text_entry(self, steps):
        session = LessonSession(steps, "vectors")
        assert not session.handle_key("ArrowRight", in_text_entry=True)
        assert session.current_index == 0

    def test_other_keys_ignored(self, steps):
        session = LessonSession(steps, "vectors")
        assert not session.handle_key("Enter")
        assert session.current_index == 0


class TestLoadingSentinel:
    """Test behavior with no steps yet."""

    def test_loading_step_exposed(self):
        session = LessonSession([], "vectors")
        assert session.current_step is LOADING_STEP
        assert session.current_step.id == "__loading__"
        assert session.is_loading

    def test_all_flags_false(self):
        session = LessonSession([], "vectors")
        assert not session.is_first_step
        assert not session.is_last_step
        assert not session.can_go_next
        assert not session.can_go_back
        assert session.progress_fraction == 0.0

    def test_actions_are_noops(self):
        calls = []
        session = LessonSession([], "vectors", on_complete_step=calls.append)
        assert session.go_next() == 0
        assert not session.complete_current_step()
        assert not session.submit_quiz_answer(0)
        assert calls == []

    def test_steps_arrive_late(self, steps):
        session = LessonSession([], "vectors", initial_step_index=1)
        session.set_steps(steps)
        assert not session.is_loading
        assert session.current_step.id == "s1"
        assert session.can_go_next

    def test_set_steps_reclamps(self, steps):
        session = LessonSession(steps, "vectors", initial_step_index=2)
        session.set_steps(steps[:1])
        assert session.current_index == 0


class TestCompletion:
    """Test completion and quiz callbacks."""

    def test_complete_current_step(self, steps):
        calls = []
        session = LessonSession(steps, "vectors", on_complete_step=calls.append)
        assert session.complete_current_step()
        session.complete_current_step()
        assert session.completed_steps == {"s1"}
        assert calls == ["s1", "s1"]
        assert session.progress_fraction == pytest.approx(1 / 3)

    def test_submit_quiz_answer(self, steps):
        calls = []
        session = LessonSession(
            steps, "vectors", initial_step_index=1,
            on_answer_quiz=lambda step_id, index: calls.append((step_id, index)),
        )
        assert session.submit_quiz_answer(0)
        assert session.quiz_answers == {"s2": 0}
        assert calls == [("s2", 0)]
        assert not session.current_step.quiz.is_correct(0)

    def test_quiz_answer_ignored_without_quiz(self, steps):
        session = LessonSession(steps, "vectors")
        assert not session.submit_quiz_answer(0)
        assert session.quiz_answers == {}


class TestMergePersisted:
    """Test rehydration from persisted progress."""

    def test_union_keeps_session_progress(self, steps):
        session = LessonSession(steps, "vectors")
        session.complete_current_step()
        session.merge_persisted(completed_steps={"s3"})
        assert session.completed_steps == {"s1", "s3"}

    def test_session_answers_win(self, steps):
        session = LessonSession(steps, "vectors", initial_step_index=1)
        session.submit_quiz_answer(2)
        session.merge_persisted(quiz_answers={"s2": 1, "s9": 0})
        assert session.quiz_answers == {"s2": 2, "s9": 0}

    def test_merge_never_removes(self, steps):
        session = LessonSession(steps, "vectors", initial_completed_steps={"s1", "s2"})
        session.merge_persisted(completed_steps=set())
        assert session.completed_steps == {"s1", "s2"}


class TestLifecycle:
    """Test teardown."""

    def test_close_drops_callbacks(self, steps):
        calls = []
        with LessonSession(steps, "vectors", on_complete_step=calls.append) as session:
            session.complete_current_step()
        assert not session.complete_current_step()
        assert not session.handle_key("ArrowRight")
        assert calls == ["s1"]
        assert session.completed_steps == frozenset()


class TestOpenLesson:
    """Test wiring a session to a progress store."""

    def test_unknown_module(self, store):
        assert open_lesson(store, "nope") is None

    def test_writes_go_through_store(self, store):
        session = open_lesson(store, "vectors")
        session.complete_current_step()
        session.go_next()
        session.submit_quiz_answer(1)

        progress = store.get_module_progress("vectors")
        assert progress.steps_completed == {"s1"}
        assert progress.quiz_answers == {"s2": 1}

    def test_resumes_from_store(self, store):
        store.complete_step("vectors", "s1")
        store.complete_step("vectors", "s2")
        session = open_lesson(store, "vectors")
        assert session.current_step.id == "s2"
        assert session.completed_steps == {"s1", "s2"}
