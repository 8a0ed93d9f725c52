import pytest

from cfn_hotswap.engine.types import PropertyDifference
from cfn_hotswap.hotswap.common import (
    EcsHotswapProperties,
    HotswappableChangeCandidate,
    classify_changes,
    lower_case_first_character,
    report_non_hotswappable_change,
    transform_object_keys,
)


def _candidate(**updates) -> HotswappableChangeCandidate:
    return HotswappableChangeCandidate(
        logical_id="Func",
        old_value={"Type": "AWS::Lambda::Function"},
        new_value={"Type": "AWS::Lambda::Function"},
        property_updates={name: PropertyDifference("old", new) for name, new in updates.items()},
    )


class TestEcsHotswapProperties:
    def test_empty(self):
        assert EcsHotswapProperties().is_empty()

    def test_maximum_defaults_when_minimum_is_set(self):
        properties = EcsHotswapProperties(minimum_healthy_percent=50)
        assert properties.maximum_healthy_percent == 200
        assert not properties.is_empty()

    def test_negative_values_are_rejected(self):
        with pytest.raises(ValueError):
            EcsHotswapProperties(minimum_healthy_percent=-1)
        with pytest.raises(ValueError):
            EcsHotswapProperties(maximum_healthy_percent=-1)

    def test_from_config(self, monkeypatch):
        monkeypatch.setattr("cfn_hotswap.config.HOTSWAP_ECS_MINIMUM_HEALTHY_PERCENT", 10)
        monkeypatch.setattr("cfn_hotswap.config.HOTSWAP_ECS_MAXIMUM_HEALTHY_PERCENT", 150)

        properties = EcsHotswapProperties.from_config()

        assert properties == EcsHotswapProperties(10, 150)


class TestClassifyChanges:
    def test_split(self):
        classified = classify_changes(_candidate(Code="a", Handler="b"), ["Code", "Environment"])

        assert classified.names_of_hotswappable_props == ["Code"]
        assert list(classified.non_hotswappable_props) == ["Handler"]

    def test_report_non_hotswappable_properties(self):
        ret = []
        classify_changes(_candidate(Code="a", Handler="b", Runtime="c"), ["Code"]).report_non_hotswappable_property_changes(ret)

        assert len(ret) == 1
        assert ret[0].rejected_changes == ["Handler", "Runtime"]
        assert ret[0].reason == "resource properties 'Handler, Runtime' are not hotswappable on this resource type"
        assert ret[0].hotswap_only_visible

    def test_report_tags(self):
        ret = []
        classify_changes(_candidate(Tags=[]), ["Code"]).report_non_hotswappable_property_changes(ret)

        assert ret[0].reason == "Tags are not hotswappable"

    def test_nothing_to_report(self):
        ret = []
        classify_changes(_candidate(Code="a"), ["Code"]).report_non_hotswappable_property_changes(ret)

        assert ret == []

    def test_report_non_hotswappable_change_defaults_to_all_updates(self):
        ret = []
        report_non_hotswappable_change(ret, _candidate(A=1, B=2), reason="no", hotswap_only_visible=False)

        assert ret[0].rejected_changes == ["A", "B"]
        assert not ret[0].hotswap_only_visible


class TestTransformObjectKeys:
    def test_lower_case_first_character(self):
        assert lower_case_first_character("ContainerDefinitions") == "containerDefinitions"
        assert lower_case_first_character("") == ""

    def test_nested_keys_are_transformed(self):
        value = {"Image": "nginx", "PortMappings": [{"ContainerPort": 80}]}

        assert transform_object_keys(value, lower_case_first_character) == {
            "image": "nginx",
            "portMappings": [{"containerPort": 80}],
        }

    def test_keep_case_of_user_defined_keys(self):
        value = {
            "ContainerDefinitions": [
                {
                    "DockerLabels": {"Label": "x"},
                    "LogConfiguration": {"LogDriver": "awslogs", "Options": {"Awslogs-Group": "g"}},
                }
            ]
        }
        keep_case_of = {"ContainerDefinitions": {"DockerLabels": True, "LogConfiguration": {"Options": True}}}

        assert transform_object_keys(value, lower_case_first_character, keep_case_of) == {
            "containerDefinitions": [
                {
                    "dockerLabels": {"Label": "x"},
                    "logConfiguration": {"logDriver": "awslogs", "options": {"Awslogs-Group": "g"}},
                }
            ]
        }
