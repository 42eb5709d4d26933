"""Template rendering utilities."""

import logging
from typing import Any, Dict
from jinja2 import Environment, BaseLoader, StrictUndefined, TemplateError


logger = logging.getLogger(__name__)


class StringTemplateLoader(BaseLoader):
    """Template loader for string templates."""

    def __init__(self, template_string: str):
        self.template_string = template_string

    def get_source(self, environment, template):
        return self.template_string, None, lambda: True


def render_template(template_str: str, **context: Any) -> str:
    """Render a Jinja2 template string with given context.

    Undefined variables are an error: a manifest silently rendered with an
    empty image tag would recreate containers with the wrong image.
    """
    try:
        env = Environment(
            loader=StringTemplateLoader(template_str),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        template = env.get_template("")
        return template.render(**context)

    except TemplateError as e:
        logger.error(f"Template rendering error: {e}")
        raise


def merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = value

    return result


def parse_vars(pairs) -> Dict[str, str]:
    """Turn ["key=value", ...] into a dict."""
    result = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid variable '{pair}', expected key=value")
        result[key.strip()] = value
    return result
