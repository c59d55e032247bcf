"""Tests for the ApplicationEngine state machine."""

from __future__ import annotations

import pytest

from issue_templates.engine import ApplicationEngine, EngineState
from issue_templates.errors import InvalidTemplateError
from issue_templates.fields import TextField
from issue_templates.models import ALL_TRACKERS, SpecificTracker, Template

SAMPLE = Template(
    id="tpl-sample",
    project_id="ecookbook",
    tracker=SpecificTracker("bug"),
    title="Sample Title for rspec",
    issue_title="Sample Title",
    description="Sample description",
)
NO_TITLE = Template(id="tpl-body", project_id="ecookbook", tracker=ALL_TRACKERS, title="Body only", description="Body text")


class _BrokenField(TextField):
    """Text field whose writes fail after the first *ok_writes* calls."""

    def __init__(self, value: str = "", *, ok_writes: int = 0) -> None:
        super().__init__(value)
        self.ok_writes = ok_writes

    def set(self, value: str) -> None:
        if self.ok_writes <= 0:
            raise OSError("widget detached")
        self.ok_writes -= 1
        super().set(value)


def _engine(subject: str = "", description: str = "", *, replace: bool = False) -> tuple[ApplicationEngine, TextField, TextField]:
    s = TextField(subject)
    d = TextField(description)
    return ApplicationEngine(s, d, should_replace=replace, available=[SAMPLE, NO_TITLE]), s, d


class TestApply:
    def test_idle_to_applied(self) -> None:
        engine, s, d = _engine("different subject", "different description")
        assert engine.state is EngineState.IDLE
        applied = engine.apply("tpl-sample")
        assert applied is SAMPLE
        assert engine.state is EngineState.APPLIED
        assert engine.applied_template is SAMPLE
        assert s.get() == "different subject Sample Title"
        assert d.get() == "different description\n\nSample description"

    def test_accepts_template_object(self) -> None:
        engine, _, d = _engine()
        engine.apply(SAMPLE)
        assert d.get() == "Sample description"

    def test_same_text_not_modified(self) -> None:
        engine, s, d = _engine("Sample Title", "Sample description")
        engine.apply("tpl-sample")
        assert s.get() == "Sample Title"
        assert d.get() == "Sample description"

    def test_apply_twice_is_idempotent(self) -> None:
        engine, s, d = _engine("Subject", "Body")
        engine.apply("tpl-sample")
        first = (s.get(), d.get())
        engine.apply("tpl-sample")
        assert (s.get(), d.get()) == first

    def test_unknown_template_leaves_everything(self) -> None:
        engine, s, d = _engine("typed subject", "typed body")
        with pytest.raises(InvalidTemplateError) as exc_info:
            engine.apply("tpl-missing")
        assert exc_info.value.template_id == "tpl-missing"
        assert engine.state is EngineState.IDLE
        assert engine.snapshot is None
        assert (s.get(), d.get()) == ("typed subject", "typed body")

    def test_unknown_template_after_apply_keeps_snapshot(self) -> None:
        engine, _, _ = _engine("s", "d")
        engine.apply("tpl-sample")
        snapshot = engine.snapshot
        with pytest.raises(InvalidTemplateError):
            engine.apply("tpl-missing")
        assert engine.snapshot is snapshot
        assert engine.state is EngineState.APPLIED

    def test_set_available_changes_what_apply_accepts(self) -> None:
        engine, _, _ = _engine()
        engine.set_available([NO_TITLE])
        with pytest.raises(InvalidTemplateError):
            engine.apply("tpl-sample")
        engine.apply("tpl-body")

    def test_replace_mode(self) -> None:
        engine, s, d = _engine("old subject", "old body", replace=True)
        engine.apply("tpl-sample")
        assert s.get() == "Sample Title"
        assert d.get() == "Sample description"
        engine.revert()
        assert (s.get(), d.get()) == ("old subject", "old body")


class TestRevert:
    def test_revert_exactness(self) -> None:
        engine, s, d = _engine("Test for revert subject", "Test for revert description")
        engine.apply("tpl-sample")
        assert s.get() == "Test for revert subject Sample Title"
        assert d.get() == "Test for revert description\n\nSample description"

        assert engine.revert() is True
        assert s.get() == "Test for revert subject"
        assert d.get() == "Test for revert description"
        assert engine.state is EngineState.IDLE
        assert engine.snapshot is None
        assert engine.applied_template is None

    def test_revert_without_apply_is_noop(self) -> None:
        engine, s, d = _engine("untouched", "also untouched")
        assert engine.revert() is False
        assert (s.get(), d.get()) == ("untouched", "also untouched")
        assert engine.state is EngineState.IDLE

    def test_double_revert_is_noop(self) -> None:
        engine, s, _ = _engine("x")
        engine.apply("tpl-sample")
        assert engine.revert() is True
        s.set("typed after revert")
        assert engine.revert() is False
        assert s.get() == "typed after revert"

    def test_second_apply_snapshot_is_state_just_before(self) -> None:
        engine, s, d = _engine("start", "start body")
        engine.apply("tpl-body")
        after_first = (s.get(), d.get())
        engine.apply("tpl-sample")
        engine.revert()
        assert (s.get(), d.get()) == after_first
        assert engine.revert() is False

    def test_revert_discards_edits_made_after_apply(self) -> None:
        engine, _, d = _engine("", "mine")
        engine.apply("tpl-body")
        d.set(d.get() + "\nextra typing")
        engine.revert()
        assert d.get() == "mine"

    def test_template_without_issue_title_never_touches_subject(self) -> None:
        engine, s, d = _engine("original subject", "original body")
        engine.apply("tpl-body")
        assert engine.snapshot is not None
        assert engine.snapshot.restores_subject is False
        s.set("edited subject")
        engine.revert()
        assert s.get() == "edited subject"
        assert d.get() == "original body"

    def test_can_revert_flag(self) -> None:
        engine, _, _ = _engine()
        assert not engine.can_revert
        engine.apply("tpl-sample")
        assert engine.can_revert
        engine.revert()
        assert not engine.can_revert


class TestDefaultApply:
    def test_single_default_applied(self) -> None:
        default = Template(id="tpl-default", project_id="p", tracker=ALL_TRACKERS, title="Default", description="Default body", is_default=True)
        s, d = TextField(), TextField()
        engine = ApplicationEngine(s, d, available=[SAMPLE, default])
        assert engine.apply_default() is default
        assert d.get() == "Default body"
        assert engine.state is EngineState.APPLIED

    def test_no_default(self) -> None:
        engine, _, d = _engine()
        assert engine.apply_default() is None
        assert engine.state is EngineState.IDLE
        assert d.get() == ""

    def test_multiple_defaults_skipped(self) -> None:
        defaults = [
            Template(id=f"tpl-{i}", project_id="p", tracker=ALL_TRACKERS, title=f"D{i}", description="x", is_default=True) for i in range(2)
        ]
        engine = ApplicationEngine(TextField(), TextField(), available=defaults)
        assert engine.apply_default() is None


class TestFailureSafety:
    def test_failed_write_restores_fields(self) -> None:
        s = _BrokenField("typed subject", ok_writes=0)
        d = TextField("typed body")
        engine = ApplicationEngine(s, d, available=[SAMPLE])
        with pytest.raises(OSError):
            engine.apply("tpl-sample")
        assert d.get() == "typed body"
        assert s.get() == "typed subject"
        assert engine.state is EngineState.IDLE
        assert engine.snapshot is None

    def test_failed_revert_reports_false(self) -> None:
        s = TextField("subj")
        d = _BrokenField("body", ok_writes=1)
        engine = ApplicationEngine(s, d, available=[SAMPLE])
        engine.apply("tpl-sample")
        assert engine.revert() is False
        assert engine.state is EngineState.APPLIED
