"""YAML 配置读取

配置文件按段组织，段名对应 AppSettings 的字段::

    database:
      url: "sqlite:///./tree.db"
    logging:
      level: DEBUG
    nested_set:
      lock_for_update: true
      rebuild_delete_unmatched: false

使用示例:
    from nestedset.config import AppSettings, load_yaml_config, configure_nested_set

    settings = load_yaml_config("config/settings.yaml", AppSettings)
    configure_nested_set(settings.nested_set)
"""

import os
from typing import Any, Dict, List, Optional, Type, TypeVar

import yaml


T = TypeVar("T")


def _absolute(config_path: str, base_dir: Optional[str] = None) -> str:
    if not os.path.isabs(config_path) and base_dir:
        config_path = os.path.join(base_dir, config_path)
    return os.path.abspath(config_path)


class ConfigLoader:
    """按绝对路径缓存的 YAML 读取器

    同一个文件只解析一次；文件改动后用 reload() 重新读取。
    """

    _cache: Dict[str, Dict[str, Any]] = {}

    @classmethod
    def load(
        cls,
        config_path: str,
        base_dir: Optional[str] = None,
        use_cache: bool = True
    ) -> Dict[str, Any]:
        """读取 YAML 文件为字典，空文件返回 {}

        Args:
            config_path: 文件路径，相对路径按 base_dir（未提供时按当前目录）解析
            base_dir: 相对路径的基准目录
            use_cache: 是否读写缓存

        Raises:
            FileNotFoundError: 文件不存在
            yaml.YAMLError: 内容不是合法的 YAML
        """
        path = _absolute(config_path, base_dir)
        if use_cache and path in cls._cache:
            return cls._cache[path]

        if not os.path.isfile(path):
            raise FileNotFoundError(f"配置文件不存在: {path}")

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if use_cache:
            cls._cache[path] = data
        return data

    @classmethod
    def reload(cls, config_path: str, base_dir: Optional[str] = None) -> Dict[str, Any]:
        """丢弃该文件的缓存后重新读取"""
        cls._cache.pop(_absolute(config_path, base_dir), None)
        return cls.load(config_path, base_dir)

    @classmethod
    def clear_cache(cls):
        cls._cache.clear()

    @classmethod
    def get_cached_paths(cls) -> List[str]:
        return list(cls._cache)


def load_yaml_config(
    config_path: str,
    settings_class: Type[T],
    base_dir: Optional[str] = None,
    **overrides
) -> T:
    """读取 YAML 并构造配置对象，overrides 覆盖文件中的同名顶层字段

    文件内容直接作为 settings_class 的构造参数：
    AppSettings 对应分段的文件，NestedSetSettings 等子配置对应平铺的文件。
    未在文件和 overrides 中出现的字段仍按环境变量、默认值的顺序取值。
    """
    values = {**ConfigLoader.load(config_path, base_dir), **overrides}
    return settings_class(**values)
