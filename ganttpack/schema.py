"""
配置模式验证

提供 .ganttpackrc 配置文件的 JSON Schema 验证功能。
"""

from typing import Any, Dict, List, Tuple
import json
from pathlib import Path


# JSON Schema for .ganttpackrc
GANTTPACKRC_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "GanttpackConfig",
    "description": "Ganttpack configuration file schema",
    "type": "object",
    "properties": {
        "policies": {
            "type": "object",
            "properties": {
                "move_children_with_parent": {"type": "boolean", "default": True},
                "update_disabled_parents_on_change": {"type": "boolean", "default": True},
                "adjust_to_working_dates": {"type": "boolean", "default": False},
                "rtl": {"type": "boolean", "default": False}
            },
            "additionalProperties": False
        },
        "drag": {
            "type": "object",
            "properties": {
                "scroll_step": {"type": "integer", "minimum": 1},
                "scroll_delay_ms": {"type": "integer", "minimum": 1},
                "side_scroll_area_width": {"type": "integer", "minimum": 0},
                "x_step": {"type": "number", "minimum": 1},
                "time_step_minutes": {"type": "integer", "minimum": 1}
            },
            "additionalProperties": False
        },
        "calendar": {
            "type": "object",
            "properties": {
                "weekend_days": {
                    "type": "array",
                    "items": {"type": "integer", "minimum": 0, "maximum": 6}
                },
                "holidays": {
                    "type": "array",
                    "items": {"type": "string", "pattern": r"^\d{4}-\d{2}-\d{2}$"}
                },
                "round_step_minutes": {"type": "integer", "minimum": 1}
            },
            "additionalProperties": False
        },
        "log_level": {
            "type": "string",
            "enum": ["debug", "info", "warning", "error"],
            "default": "info"
        },
        "output_format": {
            "type": "string",
            "enum": ["rich", "json", "plain"],
            "default": "rich"
        }
    },
    "additionalProperties": False
}


class ValidationError:
    """验证错误"""
    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


def validate_type(value: Any, expected_type: Any, path: str) -> List[ValidationError]:
    """验证值类型"""
    errors = []

    if expected_type == "string":
        if not isinstance(value, str):
            errors.append(ValidationError(path, f"expected string, got {type(value).__name__}"))
    elif expected_type == "integer":
        if not isinstance(value, int) or isinstance(value, bool):
            errors.append(ValidationError(path, f"expected integer, got {type(value).__name__}"))
    elif expected_type == "number":
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            errors.append(ValidationError(path, f"expected number, got {type(value).__name__}"))
    elif expected_type == "boolean":
        if not isinstance(value, bool):
            errors.append(ValidationError(path, f"expected boolean, got {type(value).__name__}"))
    elif expected_type == "object":
        if not isinstance(value, dict):
            errors.append(ValidationError(path, f"expected object, got {type(value).__name__}"))
    elif expected_type == "array":
        if not isinstance(value, list):
            errors.append(ValidationError(path, f"expected array, got {type(value).__name__}"))

    return errors


def validate_schema(
    data: Any,
    schema: Dict[str, Any],
    path: str = ""
) -> List[ValidationError]:
    """
    验证数据是否符合 schema。

    Args:
        data: 要验证的数据
        schema: JSON Schema
        path: 当前路径（用于错误消息）

    Returns:
        验证错误列表
    """
    errors: List[ValidationError] = []

    # 检查类型
    if "type" in schema:
        type_errors = validate_type(data, schema["type"], path or "root")
        if type_errors:
            return type_errors  # 类型错误直接返回

    # 验证对象属性
    if schema.get("type") == "object" and isinstance(data, dict):
        properties = schema.get("properties", {})

        for key, value in data.items():
            key_path = f"{path}.{key}" if path else key

            if key in properties:
                errors.extend(validate_schema(value, properties[key], key_path))
            elif schema.get("additionalProperties") is False:
                errors.append(ValidationError(key_path, "unknown property"))

    # 验证数组元素
    if schema.get("type") == "array" and isinstance(data, list) and "items" in schema:
        for i, item in enumerate(data):
            errors.extend(validate_schema(item, schema["items"], f"{path}[{i}]"))

    # 验证数值范围
    if schema.get("type") in ("integer", "number") and isinstance(data, (int, float)):
        if "minimum" in schema and data < schema["minimum"]:
            errors.append(ValidationError(path, f"must be >= {schema['minimum']}"))
        if "maximum" in schema and data > schema["maximum"]:
            errors.append(ValidationError(path, f"must be <= {schema['maximum']}"))

    # 验证字符串格式
    if schema.get("type") == "string" and isinstance(data, str) and "pattern" in schema:
        import re
        if not re.match(schema["pattern"], data):
            errors.append(ValidationError(path, f"does not match {schema['pattern']}"))

    # 验证 enum
    if "enum" in schema and data not in schema["enum"]:
        errors.append(ValidationError(path, f"must be one of {schema['enum']}"))

    return errors


def validate_config(config: Dict[str, Any]) -> Tuple[bool, List[ValidationError]]:
    """
    验证配置字典。

    Args:
        config: 配置字典

    Returns:
        (是否有效, 错误列表)
    """
    errors = validate_schema(config, GANTTPACKRC_SCHEMA)
    return len(errors) == 0, errors


def validate_config_file(path: Path) -> Tuple[bool, List[ValidationError]]:
    """
    验证配置文件。

    Args:
        path: 配置文件路径

    Returns:
        (是否有效, 错误列表)
    """
    if not path.exists():
        return False, [ValidationError("file", f"config file not found: {path}")]

    try:
        config = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        return False, [ValidationError("file", f"invalid JSON: {e}")]

    return validate_config(config)


def format_validation_errors(errors: List[ValidationError]) -> str:
    """格式化验证错误为用户友好的消息"""
    if not errors:
        return "✅ 配置有效"

    lines = ["❌ 配置验证失败:"]
    for error in errors:
        lines.append(f"  • {error}")
    return "\n".join(lines)
