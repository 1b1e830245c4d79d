"""
Config schema and file loading.
"""

import json

import pytest
from pydantic import ValidationError

from services import config_io
from services.config_schema import AppConfig, BridgeConfig
from services.error import ConfigError


def test_defaults():
    config = AppConfig()
    assert config.bridge.cmd_prefix == "/"
    assert config.bridge.cmd_status == "查询"
    assert config.bridge.poke_status is True
    assert config.bridge.group_chat_template is None
    assert config.napcat.ws_url == "ws://127.0.0.1:3001"


def test_lists_become_tuples_and_config_is_frozen():
    config = BridgeConfig(superusers=["10001"], enable_groups=[1, 2])
    assert config.superusers == (10001,)
    assert config.enable_groups == (1, 2)
    with pytest.raises(ValidationError):
        config.cmd_prefix = "#"


def test_empty_template_means_disabled():
    assert BridgeConfig(player_join_template="").player_join_template is None


def test_invalid_regex_rejected():
    with pytest.raises(ValidationError, match="allow_cmd"):
        BridgeConfig(allow_cmd=["(unclosed"])


@pytest.mark.parametrize("field", [
    "group_chat_template",
    "player_join_template",
    "player_die_template",
])
def test_unclosed_template_tag_rejected(field):
    with pytest.raises(ValidationError, match=field):
        BridgeConfig(enable_groups=[1], **{field: "{{player joined"})


def test_unbalanced_section_rejected():
    with pytest.raises(ValidationError, match="player_chat_template"):
        BridgeConfig(player_chat_template="{{#player}}{{message}}")


def test_well_formed_templates_accepted():
    config = BridgeConfig(
        group_chat_template="<{{name}}> {{{message}}}",
        player_die_template="{{player}} died to {{source}}",
    )
    assert config.player_die_template == "{{player}} died to {{source}}"


def test_load_app_config_bad_template(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"bridge": {"player_join_template": "{{player joined"}}), encoding="utf-8")
    with pytest.raises(ConfigError, match="player_join_template"):
        config_io.load_app_config(path)


def test_unknown_key_rejected():
    with pytest.raises(ValidationError):
        BridgeConfig(superuser=[1])


def test_empty_prefix_rejected():
    with pytest.raises(ValidationError):
        BridgeConfig(cmd_prefix="")


def test_poke_status_string_coerced():
    assert BridgeConfig(poke_status="false").poke_status is False


def test_secrets():
    config = AppConfig(napcat={"ws_token": "napcat-token"}, game={"ws_token": ""})
    assert config.secrets() == frozenset({"napcat-token"})


def test_find_config_prefers_json(tmp_path):
    (tmp_path / "config.yaml").write_text("bridge: {}\n", encoding="utf-8")
    assert config_io.find_config(tmp_path) == tmp_path / "config.yaml"
    (tmp_path / "config.json").write_text("{}", encoding="utf-8")
    assert config_io.find_config(tmp_path) == tmp_path / "config.json"


def test_find_config_none(tmp_path):
    assert config_io.find_config(tmp_path) is None


def test_load_app_config_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "bridge:\n"
        "  enable_groups: [123]\n"
        "  player_die_template: '{{player}} died'\n"
        "napcat:\n"
        "  ws_token: secret\n",
        encoding="utf-8",
    )
    config = config_io.load_app_config(path)
    assert config.bridge.enable_groups == (123,)
    assert config.bridge.player_die_template == "{{player}} died"
    assert config.napcat.ws_token == "secret"


def test_load_app_config_invalid(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"bridge": {"allow_cmd": ["["]}}), encoding="utf-8")
    with pytest.raises(ConfigError):
        config_io.load_app_config(path)


def test_load_config_unparseable(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        config_io.load_config(path)


@pytest.mark.parametrize("name", ["out.json", "out.yaml", "out.toml"])
def test_save_and_reload(tmp_path, name):
    data = {"bridge": {"enable_groups": [1], "cmd_prefix": "#"}}
    path = tmp_path / name
    config_io.save_config(data, path)
    assert config_io.load_config(path) == data
