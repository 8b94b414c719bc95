"""配置测试

测试内容：
1. NestedSetSettings 默认值与环境变量
2. configure_nested_set / reset_nested_set_settings
3. YAML 配置加载与缓存
"""

import pytest

from nestedset.config import (
    AppSettings,
    ConfigLoader,
    NestedSetSettings,
    configure_nested_set,
    get_nested_set_settings,
    load_yaml_config,
    reset_nested_set_settings,
)


@pytest.fixture(autouse=True)
def clean_state():
    reset_nested_set_settings()
    ConfigLoader.clear_cache()
    yield
    reset_nested_set_settings()
    ConfigLoader.clear_cache()


class TestNestedSetSettings:
    """树配置"""

    def test_defaults(self):
        settings = NestedSetSettings()

        assert settings.lock_for_update is False
        assert settings.rebuild_delete_unmatched is False
        assert settings.payload_id_key == "id"
        assert settings.payload_children_key == "children"
        assert settings.depth_alias == "depth"

    def test_env_override(self, monkeypatch):
        """环境变量前缀 NESTEDSET_TREE_"""
        monkeypatch.setenv("NESTEDSET_TREE_LOCK_FOR_UPDATE", "true")
        monkeypatch.setenv("NESTEDSET_TREE_DEPTH_ALIAS", "level")

        settings = get_nested_set_settings()

        assert settings.lock_for_update is True
        assert settings.depth_alias == "level"

    def test_configure_and_reset(self):
        configured = configure_nested_set(rebuild_delete_unmatched=True)

        assert configured.rebuild_delete_unmatched is True
        assert get_nested_set_settings() is configured

        reset_nested_set_settings()
        assert get_nested_set_settings().rebuild_delete_unmatched is False

    def test_configure_with_object(self):
        """传入配置对象并覆盖部分字段"""
        configured = configure_nested_set(
            NestedSetSettings(payload_children_key="items"),
            depth_alias="lvl",
        )

        assert configured.payload_children_key == "items"
        assert configured.depth_alias == "lvl"


class TestConfigLoader:
    """YAML 配置加载"""

    YAML = (
        "database:\n"
        "  url: \"sqlite:///./tree.db\"\n"
        "logging:\n"
        "  level: DEBUG\n"
        "nested_set:\n"
        "  lock_for_update: true\n"
        "  payload_children_key: items\n"
    )

    def test_load_and_cache(self, temp_file):
        path = temp_file("settings.yaml", self.YAML)

        config = ConfigLoader.load(path)

        assert config["nested_set"]["lock_for_update"] is True
        assert ConfigLoader.load(path) is config
        assert path in ConfigLoader.get_cached_paths()

    def test_reload_ignores_cache(self, temp_file):
        path = temp_file("settings.yaml", self.YAML)
        first = ConfigLoader.load(path)

        temp_file("settings.yaml", "logging:\n  level: WARNING\n")

        assert ConfigLoader.load(path) is first
        assert ConfigLoader.reload(path)["logging"]["level"] == "WARNING"

    def test_missing_file(self, temp_dir):
        with pytest.raises(FileNotFoundError):
            ConfigLoader.load("missing.yaml", base_dir=temp_dir)

    def test_empty_file(self, temp_file):
        path = temp_file("empty.yaml", "")
        assert ConfigLoader.load(path) == {}

    def test_load_yaml_config(self, temp_file):
        """加载为嵌套的 AppSettings"""
        path = temp_file("settings.yaml", self.YAML)

        settings = load_yaml_config(path, AppSettings)

        assert settings.database.url == "sqlite:///./tree.db"
        assert settings.logging.level == "DEBUG"
        assert settings.nested_set.payload_children_key == "items"

        configure_nested_set(settings.nested_set)
        assert get_nested_set_settings().lock_for_update is True

    def test_overrides(self, temp_file):
        """平铺的配置文件直接加载为子配置，参数优先"""
        path = temp_file("tree.yaml", "depth_alias: level\nlock_for_update: true\n")

        settings = load_yaml_config(path, NestedSetSettings, **{"depth_alias": "lvl"})

        assert settings.depth_alias == "lvl"
        assert settings.lock_for_update is True
