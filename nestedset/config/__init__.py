"""配置模块

提供配置管理功能：
- AppSettings: 聚合配置，支持 YAML + 环境变量
- 子配置类: DatabaseSettings, LoggingSettings, NestedSetSettings
- ConfigLoader: YAML 配置加载器

快速开始:
    from nestedset.config import AppSettings, load_yaml_config, configure_nested_set

    settings = load_yaml_config("config/settings.yaml", AppSettings)
    configure_nested_set(settings.nested_set)

配置优先级: 环境变量 > YAML 文件 > 默认值
"""

from .settings import (
    AppSettings,
    DatabaseSettings,
    LoggingSettings,
    NestedSetSettings,
    configure_nested_set,
    get_nested_set_settings,
    reset_nested_set_settings,
)

from .loader import (
    ConfigLoader,
    load_yaml_config,
)

__all__ = [
    # Settings Classes
    "AppSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "NestedSetSettings",
    "configure_nested_set",
    "get_nested_set_settings",
    "reset_nested_set_settings",

    # Config Loader
    "ConfigLoader",
    "load_yaml_config",
]
