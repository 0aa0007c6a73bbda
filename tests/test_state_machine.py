"""Tests for the review state machine transition table."""

import pytest

from swor_stewardship.core.state_machine import (
    STATUSES_BY_KIND,
    TRANSITIONS,
    ContributionStatus,
    ItemKind,
    Verb,
    resolve_transition,
    validate_status,
)
from swor_stewardship.errors import InvalidTransition, ValidationError


class TestResolveTransition:
    """Tests for resolve_transition — legal and illegal (kind, verb, status) triples."""

    @pytest.mark.parametrize(
        ("kind", "verb", "current", "expected_to", "expected_action"),
        [
            ("profile", "submit", "draft", "submitted_for_review", "profile.submitted"),
            ("profile", "submit", "needs_changes", "submitted_for_review", "profile.submitted"),
            ("profile", "approve", "submitted_for_review", "approved", "profile.approved"),
            ("profile", "request_changes", "submitted_for_review", "needs_changes", "profile.needs_changes"),
            ("profile", "withdraw", "submitted_for_review", "draft", "profile.withdrawn"),
            ("commendation", "approve", "submitted_for_review", "approved", "commendation.approved"),
            ("commendation", "reject", "submitted_for_review", "rejected", "commendation.rejected"),
            ("contribution", "submit", "draft", "submitted_for_review", "contribution.submitted"),
            ("contribution", "reject", "submitted_for_review", "rejected", "contribution.rejected"),
            ("contact", "triage", "new", "triaged", "contact.triaged"),
            ("contact", "close", "triaged", "closed", "contact.closed"),
            ("contact", "reopen", "closed", "triaged", "contact.reopened"),
        ],
    )
    def test_legal_transitions(
        self,
        kind: str,
        verb: str,
        current: str,
        expected_to: str,
        expected_action: str,
    ) -> None:
        """Each lifecycle edge resolves to its target status and audit action type."""
        transition = resolve_transition(kind, verb, current)

        assert transition.from_status == current
        assert transition.to_status == expected_to
        assert transition.action_type == expected_action

    @pytest.mark.parametrize(
        ("kind", "verb", "current"),
        [
            ("profile", "approve", "draft"),
            ("profile", "approve", "approved"),
            ("profile", "reject", "submitted_for_review"),
            ("profile", "request_changes", "needs_changes"),
            ("commendation", "request_changes", "submitted_for_review"),
            ("commendation", "approve", "rejected"),
            ("contribution", "approve", "archived"),
            ("contact", "triage", "closed"),
        ],
    )
    def test_illegal_transitions_raise(self, kind: str, verb: str, current: str) -> None:
        """Verbs not allowed from the current status raise InvalidTransition."""
        with pytest.raises(InvalidTransition) as exc_info:
            resolve_transition(kind, verb, current, item_id="item-1")

        assert exc_info.value.current_status == current
        assert exc_info.value.status_code == 409

    def test_unknown_verb_raises(self) -> None:
        with pytest.raises(InvalidTransition):
            resolve_transition("profile", "publish", "draft")

    def test_unknown_kind_raises(self) -> None:
        with pytest.raises(InvalidTransition):
            resolve_transition("milestone", "approve", "draft")


class TestTransitionTable:
    """Tests for the shape of the transition table."""

    def test_every_target_belongs_to_its_kind(self) -> None:
        """No rule can move an item outside its kind's status set."""
        for (kind, _verb), rule in TRANSITIONS.items():
            assert rule.target in STATUSES_BY_KIND[kind]
            assert rule.sources <= STATUSES_BY_KIND[kind]

    def test_archived_reachable_only_by_archive_verb(self) -> None:
        """Only the reset cascade's archive verb can archive a contribution or commendation."""
        for (kind, verb), rule in TRANSITIONS.items():
            if rule.target == ContributionStatus.ARCHIVED:
                assert verb is Verb.ARCHIVE, f"{kind}/{verb} reaches archived"

    def test_profile_reset_allowed_from_every_status(self) -> None:
        for status in STATUSES_BY_KIND[ItemKind.PROFILE]:
            assert resolve_transition("profile", "reset", status).to_status == "draft"


class TestValidateStatus:
    def test_accepts_declared_status(self) -> None:
        validate_status("commendation", "archived")

    def test_rejects_status_of_another_kind(self) -> None:
        with pytest.raises(ValidationError):
            validate_status("profile", "rejected")

    def test_rejects_unknown_kind(self) -> None:
        with pytest.raises(ValidationError):
            validate_status("journey", "draft")
