"""
配置加载 (config/loader.py)

~/.persanna/config.json 使用 camelCase 键名，Config 的字段使用 snake_case。
键名转换交给 pydantic.alias_generators；extra_headers 这类自由映射只转换字段名，
映射内部的键（HTTP 头名）原样保留。

文件损坏或校验失败时记录警告并退回默认配置，CLI 仍然可以启动（例如 onboard 覆盖坏文件）。

对于 Java 开发者：
- rekey() 类似 Jackson 的 PropertyNamingStrategies.LOWER_CAMEL_CASE，但只作用于配置字段
"""

import json
from pathlib import Path
from typing import Any, Callable

from loguru import logger
from pydantic.alias_generators import to_camel, to_snake

from persanna.config.schema import Config

# 值是自由映射的字段
OPAQUE_FIELDS = frozenset({"extra_headers"})


def get_config_path() -> Path:
    return Path.home() / ".persanna" / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """读取配置文件；文件不存在、不是合法 JSON 或字段校验失败时返回默认配置。"""
    path = config_path or get_config_path()
    if not path.exists():
        logger.debug(f"No config file at {path}")
        return Config()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return Config.model_validate(rekey(data, to_snake))
    except (json.JSONDecodeError, ValueError) as e:
        logger.warning(f"Failed to load config from {path}: {e}; using default configuration")
        return Config()


def save_config(config: Config, config_path: Path | None = None) -> Path:
    """以 camelCase 键名写出配置，返回写入的路径。"""
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = rekey(config.model_dump(), to_camel)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def rekey(data: Any, convert: Callable[[str], str]) -> Any:
    """
    递归地用 convert 改写字典键名。

    OPAQUE_FIELDS 中的字段只改写字段名本身，它的值原样保留。
    """
    if isinstance(data, list):
        return [rekey(item, convert) for item in data]
    if not isinstance(data, dict):
        return data
    return {
        convert(key): value if to_snake(key) in OPAQUE_FIELDS else rekey(value, convert)
        for key, value in data.items()
    }
