"""
Lifecycle Blueprint Engine.

Provides:
- Declarative per-status rules (editors, editable fields, transitions, requirements)
- A generic validator that enforces any blueprint against merged entity state
- The shared update planner used by the claim, policy and invoice edit services

Rules are data: adding a status or an entity type means adding a blueprint,
never touching the validator.

Source: https://docs.python.org/3/library/dataclasses.html
Verified: 2025-12-18
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Generic, Optional, TypeVar

from src.core.enums import Role
from src.core.roles import parse_role
from src.utils.errors import BadRequestError, PermissionDeniedError

S = TypeVar("S", bound=Enum)


def status_name(value: Any) -> str:
    """Plain string form of a status (enum member or raw string)."""
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


# =============================================================================
# State Utilities
# =============================================================================


def is_missing(value: Any) -> bool:
    """A requirement is unmet when its value is absent, null or an empty string."""
    return value is None or value == ""


def merge_state(current: Mapping[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    """
    Overlay an update onto the current state.

    Keys absent from ``updates`` keep their current value. Keys present in
    ``updates`` win, including an explicit ``None`` (a cleared field).
    """
    merged = dict(current)
    merged.update(updates)
    return merged


# =============================================================================
# Blueprint
# =============================================================================


@dataclass(frozen=True)
class LifecycleRule(Generic[S]):
    """Rules that apply while an entity sits in one status."""

    label: str
    allowed_editors: frozenset[Role]
    editable_fields: frozenset[str]
    allowed_transitions: frozenset[S]
    transition_requirements: Mapping[S, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Accept list/set literals in blueprint tables and freeze them
        object.__setattr__(self, "allowed_editors", frozenset(self.allowed_editors))
        object.__setattr__(self, "editable_fields", frozenset(self.editable_fields))
        object.__setattr__(self, "allowed_transitions", frozenset(self.allowed_transitions))
        object.__setattr__(
            self,
            "transition_requirements",
            MappingProxyType(
                {target: tuple(fields) for target, fields in self.transition_requirements.items()}
            ),
        )


class LifecycleBlueprint(Generic[S]):
    """
    Immutable status table for one entity type.

    Terminal statuses are the ones without outgoing transitions.
    """

    def __init__(
        self,
        entity: str,
        rules: Mapping[S, LifecycleRule[S]],
        initial_status: S,
        status_field: str = "status",
    ):
        self.entity = entity
        self.rules: Mapping[S, LifecycleRule[S]] = MappingProxyType(dict(rules))
        self.initial_status = initial_status
        self.status_field = status_field

        self._check_consistency()

        self.statuses: tuple[S, ...] = tuple(self.rules)
        self.terminal_statuses: frozenset[S] = frozenset(
            status for status, rule in self.rules.items() if not rule.allowed_transitions
        )

    def _check_consistency(self) -> None:
        if self.initial_status not in self.rules:
            raise ValueError(f"{self.entity}: initial status {status_name(self.initial_status)} has no rule")

        for status, rule in self.rules.items():
            targets = set(rule.allowed_transitions)
            required_for = set(rule.transition_requirements)
            if targets != required_for:
                raise ValueError(
                    f"{self.entity}.{status_name(status)}: transitions "
                    f"{sorted(map(status_name, targets))} and requirement keys "
                    f"{sorted(map(status_name, required_for))} differ"
                )
            unknown = [status_name(t) for t in targets if t not in self.rules]
            if unknown:
                raise ValueError(f"{self.entity}.{status_name(status)}: unknown targets {unknown}")
            if status in targets:
                raise ValueError(f"{self.entity}.{status_name(status)}: self-transition declared")

    def rule_for(self, status: Any) -> Optional[LifecycleRule[S]]:
        """Rule for a status, or None when the status is unknown."""
        try:
            return self.rules.get(status)
        except TypeError:
            return None

    def is_terminal_state(self, status: Any) -> bool:
        """Check if a status has no way out."""
        return status in self.terminal_statuses

    def label_for(self, status: Any) -> str:
        """Display label of a status, falling back to its raw name."""
        rule = self.rule_for(status)
        return rule.label if rule else status_name(status)

    def describe(self) -> dict[str, Any]:
        """JSON-friendly dump of the whole table."""
        return {
            "entity": self.entity,
            "initial_status": status_name(self.initial_status),
            "terminal_statuses": sorted(status_name(s) for s in self.terminal_statuses),
            "states": {
                status_name(status): {
                    "label": rule.label,
                    "allowed_editors": sorted(role.value for role in rule.allowed_editors),
                    "editable_fields": sorted(rule.editable_fields),
                    "allowed_transitions": sorted(status_name(t) for t in rule.allowed_transitions),
                    "transition_requirements": {
                        status_name(target): list(fields)
                        for target, fields in rule.transition_requirements.items()
                    },
                }
                for status, rule in self.rules.items()
            },
        }


# =============================================================================
# Validator
# =============================================================================


class LifecycleValidator(Generic[S]):
    """
    Stateless enforcement of a blueprint.

    Every check fails closed: an unknown status grants nothing.
    """

    def __init__(self, blueprint: LifecycleBlueprint[S]):
        self.blueprint = blueprint

    def can_user_edit(self, role: str | Role | None, status: Any) -> bool:
        rule = self.blueprint.rule_for(status)
        if rule is None:
            return False
        return parse_role(role) in rule.allowed_editors

    def transition_requirements(self, from_status: Any, to_status: Any) -> tuple[str, ...]:
        rule = self.blueprint.rule_for(from_status)
        if rule is None:
            return ()
        return rule.transition_requirements.get(to_status, ())

    def forbidden_fields(
        self,
        updates: Iterable[str],
        status: Any,
        to_status: Any = None,
    ) -> list[str]:
        """
        Fields of an update that may not be written in ``status``.

        When ``to_status`` names a different status, the fields that the
        ``status -> to_status`` transition requires are allowed as well.
        """
        rule = self.blueprint.rule_for(status)
        if rule is None:
            return list(updates)

        allowed = set(rule.editable_fields)
        if to_status is not None and to_status != status:
            allowed.update(self.transition_requirements(status, to_status))

        return [name for name in updates if name not in allowed]

    def can_transition(self, from_status: Any, to_status: Any) -> bool:
        rule = self.blueprint.rule_for(from_status)
        if rule is None:
            return False
        return to_status in rule.allowed_transitions

    def missing_requirements(
        self,
        current: Mapping[str, Any],
        updates: Mapping[str, Any],
        to_status: Any,
    ) -> list[str]:
        """Required fields still empty once ``updates`` is applied to ``current``."""
        from_status = current.get(self.blueprint.status_field)
        required = self.transition_requirements(from_status, to_status)
        if not required:
            return []

        merged = merge_state(current, updates)
        return [name for name in required if is_missing(merged.get(name))]


# =============================================================================
# Update Planning
# =============================================================================


@dataclass
class UpdatePlan:
    """Validated outcome of an update request, ready to be persisted."""

    from_status: Any
    to_status: Any
    write_set: dict[str, Any]
    side_channel: dict[str, Any]
    merged: dict[str, Any]

    @property
    def is_transition(self) -> bool:
        return self.to_status is not None

    def transition_metadata(self) -> Optional[dict[str, str]]:
        if not self.is_transition:
            return None
        return {"from": status_name(self.from_status), "to": status_name(self.to_status)}


def plan_update(
    validator: LifecycleValidator[Any],
    role: str | Role | None,
    current: Mapping[str, Any],
    updates: Mapping[str, Any],
    side_channel_fields: frozenset[str] = frozenset(),
) -> UpdatePlan:
    """
    Authorize and validate an update against the current entity state.

    Args:
        validator: Validator of the entity's blueprint
        role: Role name of the acting user
        current: Snapshot of the persisted entity
        updates: Requested changes. Absent keys are untouched and explicit
            None clears a field. The status key requests a transition.
        side_channel_fields: Request fields that are not entity columns

    Returns:
        UpdatePlan with the write-set for the entity row

    Raises:
        PermissionDeniedError: Role may not edit in the current status
        BadRequestError: Forbidden fields, illegal transition or unmet requirements
    """
    blueprint = validator.blueprint
    status_field = blueprint.status_field
    entity = blueprint.entity
    from_status = current.get(status_field)

    if not validator.can_user_edit(role, from_status):
        raise PermissionDeniedError(
            f"Role {status_name(role) if role else 'unknown'} cannot edit a {entity} "
            f"in status {status_name(from_status)}"
        )

    requested = updates.get(status_field)
    to_status = requested if requested is not None and requested != from_status else None
    field_updates = {name: value for name, value in updates.items() if name != status_field}

    forbidden = validator.forbidden_fields(field_updates, from_status, to_status)
    if forbidden:
        raise BadRequestError(
            f"Fields not editable while the {entity} is in status "
            f"{status_name(from_status)}: {', '.join(forbidden)}"
        )

    if to_status is not None:
        if not validator.can_transition(from_status, to_status):
            raise BadRequestError(
                f"Invalid {entity} transition from {status_name(from_status)} "
                f"to {status_name(to_status)}"
            )

        missing = validator.missing_requirements(current, field_updates, to_status)
        if missing:
            raise BadRequestError(
                f"Missing required fields to move the {entity} from "
                f"{status_name(from_status)} to {status_name(to_status)}: {', '.join(missing)}"
            )

    write_set = {
        name: value for name, value in field_updates.items() if name not in side_channel_fields
    }
    if to_status is not None:
        write_set[status_field] = to_status

    side_channel = {
        name: value for name, value in field_updates.items() if name in side_channel_fields
    }

    return UpdatePlan(
        from_status=from_status,
        to_status=to_status,
        write_set=write_set,
        side_channel=side_channel,
        merged=merge_state(current, field_updates),
    )
