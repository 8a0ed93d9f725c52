from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NotRequired, Optional, TypedDict


class ResourceDefinition(TypedDict):
    Type: str
    Properties: NotRequired[dict]
    Metadata: NotRequired[dict]
    DependsOn: NotRequired[Any]
    Condition: NotRequired[str]


class Template(TypedDict):
    Resources: NotRequired[dict[str, ResourceDefinition]]
    AWSTemplateFormatVersion: NotRequired[str]
    Parameters: NotRequired[dict]
    Mappings: NotRequired[dict]
    Conditions: NotRequired[dict]
    Outputs: NotRequired[dict]


@dataclass(frozen=True)
class PropertyDifference:
    """Old and new value of a single top-level resource property, either of which may be absent (None)."""

    old_value: Any = None
    new_value: Any = None

    @property
    def is_addition(self) -> bool:
        return self.old_value is None and self.new_value is not None

    @property
    def is_removal(self) -> bool:
        return self.old_value is not None and self.new_value is None


@dataclass(frozen=True)
class Difference:
    """A changed, added or removed template element which is not a resource (e.g., an output)."""

    old_value: Any = None
    new_value: Any = None


@dataclass(frozen=True)
class ResourceDifference:
    """
    The change of a single resource between the deployed and the generated template.

    ``old_value`` and ``new_value`` are the resource definitions (``{"Type": ..., "Properties": ...}``), one of which
    is absent if the resource was added or removed. ``property_updates`` holds every top-level property whose value
    differs between the two definitions.
    """

    old_value: Optional[ResourceDefinition] = None
    new_value: Optional[ResourceDefinition] = None
    property_updates: dict[str, PropertyDifference] = field(default_factory=dict)

    def __post_init__(self):
        if self.old_value is None and self.new_value is None:
            raise ValueError("A resource difference needs at least one of old_value and new_value")

    @property
    def is_addition(self) -> bool:
        return self.old_value is None

    @property
    def is_removal(self) -> bool:
        return self.new_value is None

    @property
    def old_resource_type(self) -> Optional[str]:
        return self.old_value.get("Type") if self.old_value else None

    @property
    def new_resource_type(self) -> Optional[str]:
        return self.new_value.get("Type") if self.new_value else None

    @property
    def old_properties(self) -> Optional[dict]:
        return (self.old_value.get("Properties") or {}) if self.old_value else None

    @property
    def new_properties(self) -> Optional[dict]:
        return (self.new_value.get("Properties") or {}) if self.new_value else None


@dataclass
class TemplateDiff:
    resources: dict[str, ResourceDifference] = field(default_factory=dict)
    outputs: dict[str, Difference] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.resources and not self.outputs


@dataclass
class NestedStackTemplates:
    """
    The templates of a nested stack. ``physical_name`` is None if the nested stack has not been deployed yet,
    in which case ``deployed_template`` is empty.
    """

    physical_name: Optional[str]
    deployed_template: Template
    generated_template: Template
    nested_stack_templates: dict[str, NestedStackTemplates] = field(default_factory=dict)


@dataclass
class RootTemplateWithNestedStacks:
    """
    The deployed root template and the templates of all nested stacks. Both root templates carry the templates of
    their nested stacks in the `NestedTemplate` property of the nested stack resources, so that a change inside a
    nested stack is visible in the diff of the root templates.
    """

    deployed_root_template: Template
    generated_root_template: Template
    nested_stacks: dict[str, NestedStackTemplates] = field(default_factory=dict)


@dataclass
class StackArtifact:
    """The synthesized stack that should be deployed."""

    stack_name: str
    template: Template
    assembly_dir: Optional[str] = None
