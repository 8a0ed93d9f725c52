from cfn_hotswap.engine.diff import full_diff
from cfn_hotswap.engine.types import PropertyDifference
from cfn_hotswap.hotswap.renames import get_stack_resource_differences


def _function(code: str) -> dict:
    return {"Type": "AWS::Lambda::Function", "Properties": {"Code": {"ZipFile": code}}}


class TestRenameCollapsing:
    def test_rename_is_collapsed_into_one_change(self):
        diff = full_diff({"Resources": {"Old": _function("a")}}, {"Resources": {"New": _function("a")}})

        changes = get_stack_resource_differences(diff)

        assert list(changes) == ["New"]
        assert changes["New"].old_value == _function("a")
        assert changes["New"].new_value == _function("a")
        assert changes["New"].property_updates == {"Code": PropertyDifference(None, {"ZipFile": "a"})}

    def test_different_properties_are_not_collapsed(self):
        diff = full_diff({"Resources": {"Old": _function("a")}}, {"Resources": {"New": _function("b")}})

        changes = get_stack_resource_differences(diff)

        assert set(changes) == {"Old", "New"}
        assert changes["Old"].is_removal
        assert changes["New"].is_addition

    def test_different_types_are_not_collapsed(self):
        queue = {"Type": "AWS::SQS::Queue", "Properties": {"Code": {"ZipFile": "a"}}}
        diff = full_diff({"Resources": {"Old": queue}}, {"Resources": {"New": _function("a")}})

        changes = get_stack_resource_differences(diff)

        assert set(changes) == {"Old", "New"}

    def test_lowest_logical_id_wins_among_identical_removals(self):
        diff = full_diff(
            {"Resources": {"OldB": _function("a"), "OldA": _function("a")}},
            {"Resources": {"New": _function("a")}},
        )

        changes = get_stack_resource_differences(diff)

        assert set(changes) == {"OldB", "New"}
        assert changes["OldB"].is_removal
        assert not changes["New"].is_addition

    def test_removal_is_matched_at_most_once(self):
        diff = full_diff(
            {"Resources": {"Old": _function("a")}},
            {"Resources": {"New1": _function("a"), "New2": _function("a")}},
        )

        changes = get_stack_resource_differences(diff)

        assert set(changes) == {"New1", "New2"}
        collapsed = [change for change in changes.values() if not change.is_addition]
        assert len(collapsed) == 1

    def test_updates_are_kept(self):
        diff = full_diff(
            {"Resources": {"Func": _function("a"), "Gone": _function("x")}},
            {"Resources": {"Func": _function("b")}},
        )

        changes = get_stack_resource_differences(diff)

        assert set(changes) == {"Func", "Gone"}
        assert list(changes["Func"].property_updates) == ["Code"]
        assert changes["Gone"].is_removal
