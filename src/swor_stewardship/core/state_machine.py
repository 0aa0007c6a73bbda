"""Review state machine — per-kind status enums and the transition table.

Every status change in the engine is resolved here. A transition is the pair
(kind, verb); the table maps it to the set of legal predecessor statuses, the
target status and the audit action suffix. ReviewService._transition is the
single choke point that consults resolve_transition() before touching a row.

Kinds and lifecycles:
- profile:       draft → submitted_for_review → approved | needs_changes;
                 needs_changes → submitted_for_review; submitted_for_review → draft (withdraw)
- commendation:  submitted_for_review → approved | rejected
- contribution:  draft → submitted_for_review → approved | rejected
- contact:       new → triaged → closed; closed → triaged (reopen)

System transitions used only by safe reset: profile * → draft,
commendation/contribution * → archived.
"""

from dataclasses import dataclass
from enum import StrEnum

from swor_stewardship.errors import InvalidTransition, ValidationError


class ItemKind(StrEnum):
    """Entity kinds governed by the state machine."""

    PROFILE = "profile"
    COMMENDATION = "commendation"
    CONTRIBUTION = "contribution"
    CONTACT = "contact"


class ProfileStatus(StrEnum):
    DRAFT = "draft"
    SUBMITTED_FOR_REVIEW = "submitted_for_review"
    APPROVED = "approved"
    NEEDS_CHANGES = "needs_changes"


class CommendationStatus(StrEnum):
    SUBMITTED_FOR_REVIEW = "submitted_for_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    ARCHIVED = "archived"


class ContributionStatus(StrEnum):
    DRAFT = "draft"
    SUBMITTED_FOR_REVIEW = "submitted_for_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    ARCHIVED = "archived"


class ContactStatus(StrEnum):
    NEW = "new"
    TRIAGED = "triaged"
    CLOSED = "closed"


class Verb(StrEnum):
    """Transition verbs accepted by the state machine."""

    SUBMIT = "submit"
    APPROVE = "approve"
    REQUEST_CHANGES = "request_changes"
    REJECT = "reject"
    WITHDRAW = "withdraw"
    TRIAGE = "triage"
    CLOSE = "close"
    REOPEN = "reopen"
    # System verbs, issued only by safe reset
    RESET = "reset"
    ARCHIVE = "archive"


STATUSES_BY_KIND: dict[ItemKind, frozenset[str]] = {
    ItemKind.PROFILE: frozenset(ProfileStatus),
    ItemKind.COMMENDATION: frozenset(CommendationStatus),
    ItemKind.CONTRIBUTION: frozenset(ContributionStatus),
    ItemKind.CONTACT: frozenset(ContactStatus),
}


@dataclass(frozen=True)
class Transition:
    """A resolved, legal status change.

    Attributes:
        kind: Entity kind.
        verb: Requested verb.
        from_status: Status the item holds now.
        to_status: Status the item will hold.
        action: Audit action suffix, e.g. "approved" for profile.approved.
    """

    kind: ItemKind
    verb: Verb
    from_status: str
    to_status: str
    action: str

    @property
    def action_type(self) -> str:
        """Namespaced audit action type, e.g. profile.needs_changes."""
        return f"{self.kind.value}.{self.action}"


@dataclass(frozen=True)
class _Rule:
    sources: frozenset[str]
    target: str
    action: str


def _rule(sources: set[str], target: str, action: str) -> _Rule:
    return _Rule(sources=frozenset(sources), target=target, action=action)


_P = ProfileStatus
_CM = CommendationStatus
_CT = ContributionStatus
_CS = ContactStatus

TRANSITIONS: dict[tuple[ItemKind, Verb], _Rule] = {
    # Profile
    (ItemKind.PROFILE, Verb.SUBMIT): _rule({_P.DRAFT, _P.NEEDS_CHANGES}, _P.SUBMITTED_FOR_REVIEW, "submitted"),
    (ItemKind.PROFILE, Verb.APPROVE): _rule({_P.SUBMITTED_FOR_REVIEW}, _P.APPROVED, "approved"),
    (ItemKind.PROFILE, Verb.REQUEST_CHANGES): _rule({_P.SUBMITTED_FOR_REVIEW}, _P.NEEDS_CHANGES, "needs_changes"),
    (ItemKind.PROFILE, Verb.WITHDRAW): _rule({_P.SUBMITTED_FOR_REVIEW}, _P.DRAFT, "withdrawn"),
    (ItemKind.PROFILE, Verb.RESET): _rule(set(_P), _P.DRAFT, "reset"),
    # Commendation
    (ItemKind.COMMENDATION, Verb.APPROVE): _rule({_CM.SUBMITTED_FOR_REVIEW}, _CM.APPROVED, "approved"),
    (ItemKind.COMMENDATION, Verb.REJECT): _rule({_CM.SUBMITTED_FOR_REVIEW}, _CM.REJECTED, "rejected"),
    (ItemKind.COMMENDATION, Verb.ARCHIVE): _rule(set(_CM) - {_CM.ARCHIVED}, _CM.ARCHIVED, "archived"),
    # Contribution
    (ItemKind.CONTRIBUTION, Verb.SUBMIT): _rule({_CT.DRAFT}, _CT.SUBMITTED_FOR_REVIEW, "submitted"),
    (ItemKind.CONTRIBUTION, Verb.APPROVE): _rule({_CT.SUBMITTED_FOR_REVIEW}, _CT.APPROVED, "approved"),
    (ItemKind.CONTRIBUTION, Verb.REJECT): _rule({_CT.SUBMITTED_FOR_REVIEW}, _CT.REJECTED, "rejected"),
    (ItemKind.CONTRIBUTION, Verb.WITHDRAW): _rule({_CT.SUBMITTED_FOR_REVIEW}, _CT.DRAFT, "withdrawn"),
    (ItemKind.CONTRIBUTION, Verb.ARCHIVE): _rule(set(_CT) - {_CT.ARCHIVED}, _CT.ARCHIVED, "archived"),
    # Contact message
    (ItemKind.CONTACT, Verb.TRIAGE): _rule({_CS.NEW}, _CS.TRIAGED, "triaged"),
    (ItemKind.CONTACT, Verb.CLOSE): _rule({_CS.NEW, _CS.TRIAGED}, _CS.CLOSED, "closed"),
    (ItemKind.CONTACT, Verb.REOPEN): _rule({_CS.CLOSED}, _CS.TRIAGED, "reopened"),
}


def resolve_transition(kind: str, verb: str, current_status: str, item_id: str | None = None) -> Transition:
    """Resolve (kind, verb) from the current status against the table.

    Args:
        kind: Entity kind of the item.
        verb: Requested transition verb.
        current_status: The item's current status.
        item_id: Optional item id, included in the error message.

    Returns:
        The legal Transition.

    Raises:
        InvalidTransition: If the verb is not defined for the kind, or the
            current status is not a legal predecessor.
    """
    try:
        kind_enum = ItemKind(kind)
        verb_enum = Verb(verb)
    except ValueError as exc:
        raise InvalidTransition(kind=kind, verb=verb, current_status=current_status, item_id=item_id) from exc

    rule = TRANSITIONS.get((kind_enum, verb_enum))
    if rule is None or current_status not in rule.sources:
        raise InvalidTransition(kind=kind, verb=verb, current_status=current_status, item_id=item_id)

    return Transition(
        kind=kind_enum,
        verb=verb_enum,
        from_status=current_status,
        to_status=rule.target,
        action=rule.action,
    )


def validate_status(kind: str, status: str) -> None:
    """Reject a status outside the kind's declared set.

    Raises:
        ValidationError: If the status is not declared for the kind.
    """
    try:
        allowed = STATUSES_BY_KIND[ItemKind(kind)]
    except ValueError as exc:
        raise ValidationError(message=f"Unknown item kind '{kind}'", field="kind") from exc
    if status not in allowed:
        raise ValidationError(message=f"Status '{status}' is not valid for {kind}", field="status")
