"""Application engine -- applies template text to an issue form and reverts it.

One ``ApplicationEngine`` exists per open issue form. It owns the applied
template and the pre-apply snapshot; the form's subject and description are
reached only through ``FieldBinding`` objects.

State machine::

    IDLE    --apply-->  APPLIED   (snapshot, merge, write)
    APPLIED --apply-->  APPLIED   (snapshot overwritten with the state just before)
    APPLIED --revert--> IDLE      (restore snapshot, clear)
    IDLE    --revert--> IDLE      (no-op)
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from issue_templates.errors import InvalidTemplateError
from issue_templates.fields import FieldBinding
from issue_templates.models import FieldSnapshot, Template

logger = logging.getLogger(__name__)

DESCRIPTION_SEPARATOR = "\n\n"
SUBJECT_SEPARATOR = " "


class EngineState(enum.Enum):
    IDLE = "idle"
    APPLIED = "applied"


@dataclass(frozen=True)
class MergeResult:
    """Field values produced by applying a template."""

    subject: str
    description: str
    subject_changed: bool
    description_changed: bool


# ---------------------------------------------------------------------------
# Merge rules
# ---------------------------------------------------------------------------


def merge_description(current: str, template_text: str) -> str:
    """Append *template_text* to *current* unless it is already there.

    The containment check is a plain substring test: unrelated text that
    happens to contain the template body verbatim also counts as present.
    """
    if not current.strip() or current == template_text:
        return template_text
    if template_text in current:
        return current
    return current + DESCRIPTION_SEPARATOR + template_text


def _ends_with_word(current: str, suffix: str) -> bool:
    stripped = current.rstrip()
    if not stripped.endswith(suffix):
        return False
    head = stripped[: len(stripped) - len(suffix)]
    return not head or head[-1].isspace()


def merge_subject(current: str, issue_title: str) -> str:
    if not current.strip():
        return issue_title
    if current == issue_title or _ends_with_word(current, issue_title):
        return current
    return current.rstrip() + SUBJECT_SEPARATOR + issue_title


def merge_fields(subject: str, description: str, template: Template, *, replace: bool = False) -> MergeResult:
    """Compute the subject/description that applying *template* produces.

    In replace mode the template text overwrites the fields instead of being
    merged. A template without an issue title never touches the subject.
    """
    if replace:
        new_description = template.description
        new_subject = template.issue_title if template.issue_title is not None else subject
    else:
        new_description = merge_description(description, template.description)
        new_subject = merge_subject(subject, template.issue_title) if template.issue_title is not None else subject
    return MergeResult(
        subject=new_subject,
        description=new_description,
        subject_changed=new_subject != subject,
        description_changed=new_description != description,
    )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class ApplicationEngine:
    """Per-form state machine for applying and reverting templates."""

    def __init__(
        self,
        subject: FieldBinding,
        description: FieldBinding,
        *,
        should_replace: bool = False,
        available: Iterable[Template] = (),
    ) -> None:
        self.subject = subject
        self.description = description
        self.should_replace = should_replace
        self.state = EngineState.IDLE
        self.applied_template: Template | None = None
        self.snapshot: FieldSnapshot | None = None
        self._available: dict[str, Template] = {}
        self.set_available(available)

    def set_available(self, templates: Iterable[Template]) -> None:
        """Replace the set of templates apply() accepts (the current resolved set)."""
        self._available = {t.id: t for t in templates}

    @property
    def available(self) -> list[Template]:
        return list(self._available.values())

    @property
    def can_revert(self) -> bool:
        return self.state is EngineState.APPLIED and self.snapshot is not None

    def apply(self, template: Template | str) -> Template:
        """Merge a template into the fields, snapshotting them first.

        Raises InvalidTemplateError (leaving fields and state untouched) if the
        template is not in the available set.
        """
        template_id = template.id if isinstance(template, Template) else template
        chosen = self._available.get(template_id)
        if chosen is None:
            logger.warning("Apply rejected: template %s is not in the resolved set", template_id)
            raise InvalidTemplateError(template_id)

        before = FieldSnapshot(
            subject=self.subject.get(),
            description=self.description.get(),
            restores_subject=chosen.issue_title is not None,
        )
        merged = merge_fields(before.subject, before.description, chosen, replace=self.should_replace)
        self._write(merged.subject, merged.description, fallback=before)

        self.snapshot = before
        self.applied_template = chosen
        self.state = EngineState.APPLIED
        mode = "replace" if self.should_replace else "merge"
        logger.info(
            "Applied template %s (%s)",
            chosen.id,
            mode,
            extra={"event": "apply", "template_id": chosen.id, "project_id": chosen.project_id, "mode": mode},
        )
        return chosen

    def apply_default(self) -> Template | None:
        """Apply the single default template among the available ones, if any."""
        defaults = [t for t in self._available.values() if t.is_default]
        if len(defaults) != 1:
            if defaults:
                logger.debug("Skipping default auto-apply: %d defaults available", len(defaults))
            return None
        return self.apply(defaults[0])

    def _write(self, subject: str, description: str, *, fallback: FieldSnapshot) -> None:
        """Write both fields; on failure restore *fallback* and re-raise."""
        written: list[tuple[FieldBinding, str]] = []
        try:
            if description != fallback.description:
                self.description.set(description)
                written.append((self.description, fallback.description))
            if subject != fallback.subject:
                self.subject.set(subject)
                written.append((self.subject, fallback.subject))
        except Exception:
            logger.error("Field write failed; restoring pre-apply text", exc_info=True)
            for field, value in written:
                field.set(value)
            raise

    def revert(self) -> bool:
        """Restore the fields captured before the most recent apply.

        Returns False (and does nothing) when there is nothing to revert.
        """
        snapshot = self.snapshot
        if self.state is EngineState.IDLE or snapshot is None:
            logger.debug("Revert ignored: no template applied")
            return False
        try:
            self.description.set(snapshot.description)
            if snapshot.restores_subject:
                self.subject.set(snapshot.subject)
        except Exception:
            logger.exception("Revert could not write fields")
            return False
        reverted_id = self.applied_template.id if self.applied_template else None
        self.snapshot = None
        self.applied_template = None
        self.state = EngineState.IDLE
        logger.info("Reverted template %s", reverted_id, extra={"event": "revert", "template_id": reverted_id})
        return True
