"""User-defined HTTP endpoint descriptor.

The request body comes from a JSON template in which the string placeholders
``{prompt}`` and ``{system}`` are substituted. When the template does not use
``{system}``, the system instruction is prepended to the prompt instead so the
code-only instruction is never lost. ``response_parser`` is an optional dotted
path (``choices.0.message.content``) into the response JSON.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional

from codebuddy.core.config import ProviderConfig, ProviderType
from codebuddy.core.providers.base import ProviderDescriptor, dig
from codebuddy.core.providers.errors import ProviderMappedError
from codebuddy.utils.log import get_logger

logger = get_logger()

PROMPT_PLACEHOLDER = "{prompt}"
SYSTEM_PLACEHOLDER = "{system}"
_FALLBACK_RESPONSE_KEYS = ("response", "text", "content")
_PLACEHOLDER_RE = re.compile(r"\{(?:prompt|system)\}")


class CustomTemplateError(ProviderMappedError):
    """The request template is not a usable JSON object."""

    def __init__(self, message: str) -> None:
        super().__init__("bad_request", message)


def _substitute(node: Any, replacements: Dict[str, str]) -> Any:
    if isinstance(node, str):
        return _PLACEHOLDER_RE.sub(lambda m: replacements.get(m.group(0), m.group(0)), node)
    if isinstance(node, dict):
        return {key: _substitute(value, replacements) for key, value in node.items()}
    if isinstance(node, list):
        return [_substitute(item, replacements) for item in node]
    return node


def _mentions(node: Any, placeholder: str) -> bool:
    if isinstance(node, str):
        return placeholder in node
    if isinstance(node, dict):
        return any(_mentions(value, placeholder) for value in node.values())
    if isinstance(node, list):
        return any(_mentions(item, placeholder) for item in node)
    return False


def _parse_path(path: str) -> list:
    steps: list = []
    for raw in path.split("."):
        if not raw:
            continue
        steps.append(int(raw) if raw.isdigit() else raw)
    return steps


class CustomDescriptor(ProviderDescriptor):
    provider_type = ProviderType.CUSTOM
    name = "Custom API"
    api_key_placeholder = "Your API key"
    config_fields = ("api_key", "endpoint", "headers", "request_template", "response_parser")

    def resolve_endpoint(self, config: ProviderConfig) -> str:
        return (config.endpoint or "").strip()

    def build_headers(self, config: ProviderConfig) -> Dict[str, str]:
        raw = config.extra("headers", "{}")
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("[providers] Custom headers are not valid JSON; using defaults")
            parsed = None
        if not isinstance(parsed, dict) or not parsed:
            parsed = {"Content-Type": "application/json"}
        headers = {str(key): str(value) for key, value in parsed.items()}
        if config.api_key and not any(key.lower() == "authorization" for key in headers):
            headers["Authorization"] = f"Bearer {config.api_key}"
        return headers

    def build_request(
        self, prompt: str, config: ProviderConfig, system_prompt: str
    ) -> Dict[str, Any]:
        raw = config.extra("request_template")
        if not raw:
            return {"prompt": f"{system_prompt}\n\n{prompt}"}
        try:
            template = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CustomTemplateError(f"Request template is not valid JSON: {exc}") from exc
        if not isinstance(template, dict):
            raise CustomTemplateError("Request template must be a JSON object")

        if _mentions(template, SYSTEM_PLACEHOLDER):
            replacements = {PROMPT_PLACEHOLDER: prompt, SYSTEM_PLACEHOLDER: system_prompt}
        else:
            replacements = {PROMPT_PLACEHOLDER: f"{system_prompt}\n\n{prompt}"}
        return _substitute(template, replacements)

    def parse_response(self, data: Any, config: Optional[ProviderConfig] = None) -> str:
        path = config.extra("response_parser").strip() if config else ""
        if path:
            value = dig(data, *_parse_path(path))
            return value if isinstance(value, str) else ""
        if isinstance(data, dict):
            for key in _FALLBACK_RESPONSE_KEYS:
                value = data.get(key)
                if isinstance(value, str) and value:
                    return value
        return json.dumps(data)
