import json
import logging

import yaml

from cfn_hotswap.engine.types import Template

LOG = logging.getLogger(__name__)


class CfnYamlLoader(yaml.SafeLoader):
    """Safe YAML loader that understands the short form of intrinsic functions and keeps dates as strings."""


CfnYamlLoader.yaml_implicit_resolvers = {
    k: [r for r in v if r[0] != "tag:yaml.org,2002:timestamp"]
    for k, v in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _construct_intrinsic(loader: yaml.Loader, tag_suffix: str, node: yaml.Node):
    if isinstance(node, yaml.ScalarNode):
        value = loader.construct_scalar(node)
    elif isinstance(node, yaml.SequenceNode):
        value = loader.construct_sequence(node, deep=True)
    else:
        value = loader.construct_mapping(node, deep=True)

    if tag_suffix == "Ref":
        return {"Ref": value}
    if tag_suffix == "GetAtt" and isinstance(value, str):
        value = value.split(".", 1)
    if tag_suffix == "Condition":
        return {"Condition": value}
    return {f"Fn::{tag_suffix}": value}


CfnYamlLoader.add_multi_constructor("!", _construct_intrinsic)


def parse_template(template: str | bytes | dict) -> Template:
    """
    Parses a template body, as returned by ``GetTemplate`` or read from a file, into a dict.
    botocore already decodes JSON template bodies, in which case the dict is returned as is.
    """
    if isinstance(template, dict):
        return template
    if not template:
        return {}
    try:
        return json.loads(template)
    except ValueError:
        return yaml.load(template, Loader=CfnYamlLoader) or {}


def load_template_file(path: str) -> Template:
    with open(path) as template_file:
        return parse_template(template_file.read())
