"""Post-response hooks.

Hooks run over the assistant's raw response before it is recorded. The
change-application hook is registered first by default.
"""

from retort.hooks.apply_changes import ApplyChangesHook, build_default_pipeline
from retort.hooks.base import HookResult, PostResponseHook
from retort.hooks.pipeline import HookPipeline

__all__ = [
    "ApplyChangesHook",
    "HookPipeline",
    "HookResult",
    "PostResponseHook",
    "build_default_pipeline",
]
