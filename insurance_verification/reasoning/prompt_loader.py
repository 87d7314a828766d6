"""Prompt templates shipped with the package.

Templates are plain .txt files under ``insurance_verification/prompts``.
Placeholders use ``{name}``; JSON examples inside a template keep their
braces because only known variable names are replaced.
"""
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from insurance_verification.config.logging_config import get_logger

logger = get_logger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"
_PLACEHOLDER = re.compile(r"\{([a-z_][a-z0-9_]*)\}")


def render_template(template: str, variables: Dict[str, Any]) -> str:
    """Replace ``{name}`` for every name in ``variables``; other braces are untouched."""
    rendered = template
    for name, value in variables.items():
        rendered = rendered.replace("{" + name + "}", "" if value is None else str(value))
    return rendered


class PromptLoader:
    """Reads templates from a prompts directory, caching the raw text."""

    def __init__(self, prompts_dir: Optional[Path] = None):
        self.prompts_dir = (prompts_dir or PROMPTS_DIR).resolve()
        if not self.prompts_dir.is_dir():
            raise FileNotFoundError(f"Prompts directory not found: {self.prompts_dir}")

    @lru_cache(maxsize=16)
    def _read(self, name: str) -> str:
        path = (self.prompts_dir / name).resolve()
        if self.prompts_dir not in path.parents:
            raise ValueError(f"Prompt path escapes the prompts directory: {name}")
        if not path.is_file():
            raise FileNotFoundError(f"Prompt file not found: {path}")
        text = path.read_text(encoding="utf-8")
        logger.debug("Prompt template read", prompt=name, length=len(text))
        return text

    def load(self, name: str, variables: Optional[Dict[str, Any]] = None) -> str:
        """
        Load a template and fill in its variables.

        Args:
            name: Path relative to the prompts directory, e.g. "verification/system.txt"
            variables: Placeholder values

        Returns:
            Rendered prompt text
        """
        text = render_template(self._read(name), variables or {})
        leftover = sorted(set(_PLACEHOLDER.findall(text)))
        if leftover:
            logger.warning("Prompt has unfilled placeholders", prompt=name, placeholders=leftover)
        return text


_prompt_loader: Optional[PromptLoader] = None


def get_prompt_loader() -> PromptLoader:
    """Process-wide loader over the packaged prompts."""
    global _prompt_loader
    if _prompt_loader is None:
        _prompt_loader = PromptLoader()
    return _prompt_loader
