"""High-level analyze/improve flows built on the provider layer.

Each flow composes the user prompt, resolves any site-specific instructions
for the page the script came from and dispatches through ``call_api``.
Nothing here raises for provider failures; callers inspect the returned
``ProviderResult``.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from codebuddy.core.config import ProviderConfig
from codebuddy.core.conversation import (
    ConversationAttempt,
    ConversationHistory,
    build_improvement_prompt,
    build_prompt_with_context,
)
from codebuddy.core.providers import ProviderResult, call_api, get_provider_descriptor
from codebuddy.core.site_prompts import SitePromptEntry, get_prompt_for_url
from codebuddy.utils.log import get_logger

logger = get_logger()


def resolve_instructions(
    url: Optional[str],
    site_prompts: Optional[Mapping[str, SitePromptEntry]],
    default_prompt: str = "",
) -> str:
    """Site prompt for ``url``, else ``default_prompt``, else ``""``."""
    if not url:
        return default_prompt or ""
    return get_prompt_for_url(url, site_prompts, default_prompt)


async def _dispatch(
    config: ProviderConfig,
    prompt: str,
    *,
    url: Optional[str],
    site_prompts: Optional[Mapping[str, SitePromptEntry]],
    default_prompt: str,
    action: str,
    **dispatch_kwargs: Any,
) -> ProviderResult:
    descriptor = get_provider_descriptor(config.provider)
    instructions = resolve_instructions(url, site_prompts, default_prompt)
    logger.debug(
        "[assistant] Dispatching request",
        extra={
            "action": action,
            "provider": descriptor.provider_type.value,
            "has_instructions": bool(instructions),
            "prompt_length": len(prompt),
        },
    )
    return await call_api(
        descriptor, config, prompt, instructions=instructions or None, **dispatch_kwargs
    )


async def analyze_output(
    config: ProviderConfig,
    output: str,
    script: Optional[str] = None,
    history: Sequence[ConversationAttempt] = (),
    url: Optional[str] = None,
    site_prompts: Optional[Mapping[str, SitePromptEntry]] = None,
    default_prompt: str = "",
    **dispatch_kwargs: Any,
) -> ProviderResult:
    """Ask the provider to fix ``script`` given the ``output`` it produced."""
    prompt = build_prompt_with_context(output, script, history)
    return await _dispatch(
        config,
        prompt,
        url=url,
        site_prompts=site_prompts,
        default_prompt=default_prompt,
        action="analyze",
        **dispatch_kwargs,
    )


async def improve_script(
    config: ProviderConfig,
    script: str,
    url: Optional[str] = None,
    site_prompts: Optional[Mapping[str, SitePromptEntry]] = None,
    default_prompt: str = "",
    **dispatch_kwargs: Any,
) -> ProviderResult:
    """Ask the provider for a more robust version of ``script``."""
    prompt = build_improvement_prompt(script)
    return await _dispatch(
        config,
        prompt,
        url=url,
        site_prompts=site_prompts,
        default_prompt=default_prompt,
        action="improve",
        **dispatch_kwargs,
    )


class ScriptAssistant:
    """Stateful wrapper that feeds previous attempts back into each analysis."""

    def __init__(
        self,
        config: ProviderConfig,
        history: Optional[ConversationHistory] = None,
        site_prompts: Optional[Mapping[str, SitePromptEntry]] = None,
        default_prompt: str = "",
    ) -> None:
        self.config = config
        self.history = history if history is not None else ConversationHistory()
        self.site_prompts = site_prompts
        self.default_prompt = default_prompt

    async def analyze(
        self,
        output: str,
        script: Optional[str] = None,
        url: Optional[str] = None,
        **dispatch_kwargs: Any,
    ) -> ProviderResult:
        result = await analyze_output(
            self.config,
            output,
            script,
            self.history.attempts(),
            url=url,
            site_prompts=self.site_prompts,
            default_prompt=self.default_prompt,
            **dispatch_kwargs,
        )
        if result.success:
            self.history.record(script or "", output, result.content)
        else:
            logger.info(
                "[assistant] Analysis failed; history unchanged",
                extra={"error_code": result.error_code, "history_size": len(self.history)},
            )
        return result

    async def improve(
        self, script: str, url: Optional[str] = None, **dispatch_kwargs: Any
    ) -> ProviderResult:
        return await improve_script(
            self.config,
            script,
            url=url,
            site_prompts=self.site_prompts,
            default_prompt=self.default_prompt,
            **dispatch_kwargs,
        )

    def reset(self) -> None:
        self.history.clear()
