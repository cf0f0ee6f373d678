"""配置加载器模块

提供从 YAML 文件加载配置的功能。

使用示例:
    from yauth.config import ConfigLoader, load_settings

    config = ConfigLoader.load("config/auth.yaml")
    settings = load_settings("config/auth.yaml", lockout={"max_failed_attempts": 3})
"""

import os
from typing import Dict, Any, Optional

import yaml
from pydantic import ValidationError

from yauth.exceptions import Err
from yauth.log import get_logger
from .settings import YAuthSettings

logger = get_logger("yauth.config")


def _resolve_path(config_path: str, base_dir: Optional[str] = None) -> str:
    if os.path.isabs(config_path):
        return config_path
    if base_dir:
        return os.path.join(base_dir, config_path)
    return os.path.abspath(config_path)


class ConfigLoader:
    """配置加载器

    从 YAML 文件加载配置，按绝对路径缓存。

    使用示例:
        config = ConfigLoader.load("config/auth.yaml")
        totp = config.get("totp", {})

        config = ConfigLoader.reload("config/auth.yaml")
        ConfigLoader.clear_cache()
    """

    _cache: Dict[str, Dict[str, Any]] = {}

    @classmethod
    def load(
        cls,
        config_path: str,
        base_dir: Optional[str] = None,
        use_cache: bool = True
    ) -> Dict[str, Any]:
        """加载配置文件

        Args:
            config_path: 配置文件路径（相对或绝对路径）
            base_dir: 基础目录，用于解析相对路径
            use_cache: 是否使用缓存

        Returns:
            配置字典

        Raises:
            FileNotFoundError: 配置文件不存在
            yaml.YAMLError: YAML 解析错误
        """
        abs_path = _resolve_path(config_path, base_dir)

        if use_cache and abs_path in cls._cache:
            return cls._cache[abs_path]

        if not os.path.exists(abs_path):
            raise FileNotFoundError(f"配置文件不存在: {abs_path}")

        with open(abs_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}

        if use_cache:
            cls._cache[abs_path] = config

        return config

    @classmethod
    def reload(cls, config_path: str, base_dir: Optional[str] = None) -> Dict[str, Any]:
        """重新加载配置文件（忽略缓存）"""
        abs_path = _resolve_path(config_path, base_dir)
        cls._cache.pop(abs_path, None)
        return cls.load(config_path, base_dir, use_cache=True)

    @classmethod
    def clear_cache(cls):
        """清除所有配置缓存"""
        cls._cache.clear()

    @classmethod
    def get_cached_paths(cls) -> list:
        """获取所有已缓存的配置文件路径"""
        return list(cls._cache.keys())


def load_settings(
    config_path: Optional[str] = None,
    base_dir: Optional[str] = None,
    **overrides
) -> YAuthSettings:
    """加载 YAML 配置并创建 YAuthSettings 实例

    配置取值非法（非数字、越界）时抛出 ConfigurationException，
    应在应用启动阶段调用，让错误在启动期暴露。

    Args:
        config_path: 配置文件路径，为空时只使用环境变量与默认值
        base_dir: 基础目录
        **overrides: 按节覆盖配置，如 lockout={"max_failed_attempts": 3}

    Returns:
        YAuthSettings 实例

    Raises:
        ConfigurationException: 配置校验失败
    """
    data: Dict[str, Any] = {}
    if config_path:
        data = {k: (dict(v) if isinstance(v, dict) else v)
                for k, v in ConfigLoader.load(config_path, base_dir).items()}

    for section, values in overrides.items():
        if isinstance(values, dict) and isinstance(data.get(section), dict):
            data[section] = {**data[section], **values}
        else:
            data[section] = values

    try:
        return YAuthSettings(**data)
    except ValidationError as e:
        details = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        logger.error(f"配置校验失败: {details}")
        raise Err.config("配置校验失败", details=details) from e
