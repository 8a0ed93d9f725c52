import json

from cfn_hotswap.engine.template import load_template_file, parse_template

YAML_TEMPLATE = """
Parameters:
  Stage:
    Type: String
    Default: 2024-01-01
Resources:
  Function:
    Type: AWS::Lambda::Function
    Properties:
      Role: !GetAtt Role.Arn
      FunctionName: !Sub "${Stage}-function"
      Environment:
        Variables:
          QUEUE: !Ref Queue
          LIST: !Join [",", [a, b]]
"""


def test_parse_json():
    template = {"Resources": {"Queue": {"Type": "AWS::SQS::Queue"}}}

    assert parse_template(json.dumps(template)) == template
    assert parse_template(json.dumps(template).encode("utf-8")) == template


def test_parse_dict_and_empty():
    assert parse_template({"Resources": {}}) == {"Resources": {}}
    assert parse_template("") == {}
    assert parse_template(None) == {}


def test_parse_yaml_with_short_form_intrinsics():
    template = parse_template(YAML_TEMPLATE)

    assert template["Parameters"]["Stage"]["Default"] == "2024-01-01"
    properties = template["Resources"]["Function"]["Properties"]
    assert properties["Role"] == {"Fn::GetAtt": ["Role", "Arn"]}
    assert properties["FunctionName"] == {"Fn::Sub": "${Stage}-function"}
    assert properties["Environment"]["Variables"] == {
        "QUEUE": {"Ref": "Queue"},
        "LIST": {"Fn::Join": [",", ["a", "b"]]},
    }


def test_load_template_file(tmp_path):
    path = tmp_path / "template.yaml"
    path.write_text(YAML_TEMPLATE)

    assert "Function" in load_template_file(str(path))["Resources"]
