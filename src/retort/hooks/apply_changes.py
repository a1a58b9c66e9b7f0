"""Hook that applies file changes proposed in a response and commits them."""

import logging
from pathlib import Path
from typing import Optional

from retort.changes.applier import ChangeApplier
from retort.changes.parser import ChangeParser
from retort.hooks.base import HookResult, PostResponseHook
from retort.hooks.pipeline import HookPipeline
from retort.vcs.git import GitRepository

logger = logging.getLogger(__name__)


class ApplyChangesHook(PostResponseHook):
    """Parses change blocks out of a response and commits them."""

    def __init__(
        self,
        project_root: Optional[Path | str] = None,
        parser: Optional[ChangeParser] = None,
        applier: Optional[ChangeApplier] = None,
    ):
        self.project_root = project_root
        self.parser = parser or ChangeParser()
        self.applier = applier or ChangeApplier()

    @property
    def name(self) -> str:
        return "apply_changes"

    def run(self, response_text: str) -> HookResult:
        parsed = self.parser.parse(response_text)
        result = HookResult(hook_name=self.name, warnings=list(parsed.warnings))

        if not parsed.has_changes:
            logger.debug("No file changes in response")
            return result

        result.commit_id = self.applier.apply_and_commit(
            self.project_root, parsed.commit_message, parsed.changes
        )
        result.files_changed = [change.path for change in parsed.changes]
        return result


def build_default_pipeline(
    project_root: Optional[Path | str] = None,
    workdir: Optional[Path | str] = None,
) -> HookPipeline:
    """Pipeline with the change-application hook registered first."""
    pipeline = HookPipeline()
    pipeline.register(
        ApplyChangesHook(
            project_root=project_root,
            applier=ChangeApplier(GitRepository(workdir)),
        )
    )
    return pipeline
