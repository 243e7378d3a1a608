"""提示词模板加载工具。

按语言(locale) 从 prompts/<locale> 目录读取 `<template_key>.md`，
模板中的 `{{name}}` 占位符由调用方传入的参数替换。
模板里的 JSON 示例使用单层花括号，不会被当作占位符。
"""

import re
from pathlib import Path
from typing import Mapping, Optional

from gemini_core.infrastructure.logging.logger import logger


PROMPTS_DIR = Path(__file__).resolve().parent

_PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")


class PromptNotFoundError(KeyError):
    """模板文件不存在。"""


class PromptSource:
    def __init__(self, root: Optional[Path] = None, locale: str = "en"):
        self._root = Path(root or PROMPTS_DIR)
        self._locale = locale

    def template_path(self, template_key: str) -> Path:
        return self._root / self._locale / f"{template_key}.md"

    def load_template(self, template_key: str) -> str:
        path = self.template_path(template_key)
        if not path.exists():
            raise PromptNotFoundError(template_key)
        return path.read_text(encoding="utf-8")

    def get_prompt(self, template_key: str, parameters: Mapping[str, str]) -> str:
        """渲染模板。缺少参数时抛 KeyError，由调用方回退到内置提示词。"""

        template = self.load_template(template_key)

        def _replace(match: "re.Match[str]") -> str:
            name = match.group(1)
            if name not in parameters:
                raise KeyError(f"Missing prompt parameter {name!r} for template {template_key!r}")
            return str(parameters[name])

        prompt = _PLACEHOLDER_RE.sub(_replace, template)
        logger.debug("Rendered prompt template", extra={"extra": {"template": template_key, "length": len(prompt)}})
        return prompt


def load_prompt(template_key: str, parameters: Mapping[str, str], locale: str = "en") -> str:
    return PromptSource(locale=locale).get_prompt(template_key, parameters)
