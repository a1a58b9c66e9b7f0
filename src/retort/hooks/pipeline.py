"""Ordered execution of post-response hooks."""

import logging

from retort.hooks.base import HookResult, PostResponseHook

logger = logging.getLogger(__name__)


class HookPipeline:
    """
    Runs registered hooks, in registration order, over a response.

    Example:
        >>> pipeline = HookPipeline()
        >>> pipeline.register(ApplyChangesHook(project_root=None))
        >>> results = pipeline.run_post_response(response_text)
    """

    def __init__(self) -> None:
        self._hooks: list[PostResponseHook] = []

    def register(self, hook: PostResponseHook) -> None:
        self._hooks.append(hook)
        logger.debug(f"Registered hook: {hook.name}")

    @property
    def hooks(self) -> list[PostResponseHook]:
        return list(self._hooks)

    def run_post_response(self, response_text: str) -> list[HookResult]:
        """
        Run every hook against ``response_text``.

        The first hook to raise stops the pipeline; its exception propagates
        unchanged so the caller can decline to record the response.

        Returns:
            One HookResult per hook, in registration order
        """
        results = []
        for hook in self._hooks:
            logger.debug(f"Running hook: {hook.name}")
            results.append(hook.run(response_text))
        return results
