"""Types shared by the hotswap engine and the detectors, and helpers for writing detectors."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

from cfn_hotswap import config
from cfn_hotswap.aws.connect import ServiceLevelClientFactory
from cfn_hotswap.engine.types import PropertyDifference, ResourceDefinition


class HotswapMode(enum.Enum):
    FALL_BACK = "fall-back"
    """Fall back to a full deployment if the changes contain non-hotswappable changes"""

    HOTSWAP_ONLY = "hotswap-only"
    """Hotswap the hotswappable changes and ignore all other changes"""


@dataclass
class EcsHotswapProperties:
    """Deployment configuration used when a hotswap updates ECS services."""

    minimum_healthy_percent: Optional[int] = None
    maximum_healthy_percent: Optional[int] = None

    def __post_init__(self):
        if self.minimum_healthy_percent is not None and self.minimum_healthy_percent < 0:
            raise ValueError("minimum_healthy_percent can't be a negative number")
        if self.maximum_healthy_percent is not None and self.maximum_healthy_percent < 0:
            raise ValueError("maximum_healthy_percent can't be a negative number")
        if self.minimum_healthy_percent is not None and self.maximum_healthy_percent is None:
            # ECS requires both values as soon as one of them is set
            self.maximum_healthy_percent = 200

    def is_empty(self) -> bool:
        return self.minimum_healthy_percent is None and self.maximum_healthy_percent is None

    @classmethod
    def from_config(cls) -> "EcsHotswapProperties":
        return cls(
            minimum_healthy_percent=config.HOTSWAP_ECS_MINIMUM_HEALTHY_PERCENT,
            maximum_healthy_percent=config.HOTSWAP_ECS_MAXIMUM_HEALTHY_PERCENT,
        )


@dataclass
class HotswapPropertyOverrides:
    """Per resource type settings which are passed through to the detectors as is."""

    ecs_hotswap_properties: EcsHotswapProperties = field(default_factory=EcsHotswapProperties)


@dataclass
class HotswappableChangeCandidate:
    """A resource change which exists in both templates with the same type, and is passed to a detector."""

    logical_id: str
    old_value: ResourceDefinition
    new_value: ResourceDefinition
    property_updates: dict[str, PropertyDifference]

    @property
    def resource_type(self) -> str:
        return self.new_value["Type"]


HotswapOperation = Callable[[ServiceLevelClientFactory], None]


@dataclass
class HotswappableChange:
    resource_type: str
    props_changed: list[str]
    service: str
    """Name of the service the change is applied through, attributed in the user agent of the calls"""
    resource_names: list[str]
    """Human readable names of the resources touched by ``apply``"""
    apply: HotswapOperation
    hotswappable: bool = field(default=True, init=False)


@dataclass
class NonHotswappableChange:
    logical_id: str
    resource_type: Optional[str]
    reason: str
    rejected_changes: list[str] = field(default_factory=list)
    hotswap_only_visible: bool = False
    """Whether the change is reported when hotswapping with ``HotswapMode.HOTSWAP_ONLY``"""
    hotswappable: bool = field(default=False, init=False)


ChangeHotswapResult = list[Union[HotswappableChange, NonHotswappableChange]]


@dataclass
class ClassifiedResourceChanges:
    hotswappable_changes: list[HotswappableChange] = field(default_factory=list)
    non_hotswappable_changes: list[NonHotswappableChange] = field(default_factory=list)


class ClassifiedChanges:
    """The property updates of a change, split into the hotswappable and the non-hotswappable ones."""

    def __init__(
        self,
        change: HotswappableChangeCandidate,
        hotswappable_props: dict[str, PropertyDifference],
        non_hotswappable_props: dict[str, PropertyDifference],
    ):
        self.change = change
        self.hotswappable_props = hotswappable_props
        self.non_hotswappable_props = non_hotswappable_props

    @property
    def names_of_hotswappable_props(self) -> list[str]:
        return list(self.hotswappable_props)

    def report_non_hotswappable_property_changes(self, ret: ChangeHotswapResult) -> None:
        names = list(self.non_hotswappable_props)
        if not names:
            return
        tag_only_change = names == ["Tags"]
        reason = (
            "Tags are not hotswappable"
            if tag_only_change
            else f"resource properties '{', '.join(names)}' are not hotswappable on this resource type"
        )
        report_non_hotswappable_change(ret, self.change, self.non_hotswappable_props, reason)


def classify_changes(
    change: HotswappableChangeCandidate, hotswappable_prop_names: list[str]
) -> ClassifiedChanges:
    hotswappable_props = {}
    non_hotswappable_props = {}
    for name, update in change.property_updates.items():
        if name in hotswappable_prop_names:
            hotswappable_props[name] = update
        else:
            non_hotswappable_props[name] = update
    return ClassifiedChanges(change, hotswappable_props, non_hotswappable_props)


def report_non_hotswappable_change(
    ret: ChangeHotswapResult,
    change: HotswappableChangeCandidate,
    non_hotswappable_props: Optional[dict[str, PropertyDifference]] = None,
    reason: Optional[str] = None,
    hotswap_only_visible: bool = True,
) -> None:
    ret.append(
        NonHotswappableChange(
            logical_id=change.logical_id,
            resource_type=change.new_value.get("Type"),
            reason=reason or "",
            rejected_changes=list(
                non_hotswappable_props if non_hotswappable_props is not None else change.property_updates
            ),
            hotswap_only_visible=hotswap_only_visible,
        )
    )


def report_non_hotswappable_resource(
    change: HotswappableChangeCandidate,
    reason: Optional[str] = None,
    hotswap_only_visible: bool = False,
) -> ChangeHotswapResult:
    return [
        NonHotswappableChange(
            logical_id=change.logical_id,
            resource_type=change.new_value.get("Type"),
            reason=reason or "",
            rejected_changes=list(change.property_updates),
            hotswap_only_visible=hotswap_only_visible,
        )
    ]


def lower_case_first_character(value: str) -> str:
    return value[:1].lower() + value[1:] if value else value


def transform_object_keys(
    value: Any, transform: Callable[[str], str], keep_case_of: Optional[dict] = None
) -> Any:
    """
    Applies ``transform`` to every key of every dict nested in ``value``.

    ``keep_case_of`` marks (by their original keys) the values whose keys are user defined and must not be
    transformed: ``True`` keeps the keys of the whole value, a dict describes the exclusions one level further down.
    """
    if isinstance(value, list):
        return [transform_object_keys(item, transform, keep_case_of) for item in value]
    if isinstance(value, dict):
        result = {}
        for key, item in value.items():
            exclusion = (keep_case_of or {}).get(key)
            if exclusion is True:
                result[transform(key)] = item
            else:
                result[transform(key)] = transform_object_keys(item, transform, exclusion or None)
        return result
    return value
