"""CLI package for changeset-release.

This package contains the modular CLI implementation:
- _core.py: CLIContext, target resolution, main entry point
- _changesets.py: generate-changeset and analyze-changesets
- _notes.py: generate-release-notes and sync-release-pr
- _version.py: bump-version and update-readme
- _changelog.py: update-changelog, update-changelogs, update-upgrade-notice
- _release.py: prepare-release and publish-release
"""

from __future__ import annotations

from ._core import (
    CLIContext,
    VERSION_FLAGS,
    create_cli_context,
    _create_cli_group,
    _read_notes_file,
    _resolve_target,
    main,
)
from ._changesets import (
    analyze_changesets_cmd,
    create_changeset,
    generate_changeset,
    run_analyze,
)
from ._notes import (
    generate_release_notes,
    render_release_notes,
    sync_release_pr,
    sync_release_pr_cmd,
)
from ._version import (
    bump_version,
    bump_version_cmd,
    next_release_version,
    update_readme,
    update_readme_cmd,
)
from ._changelog import (
    update_changelog,
    update_changelog_cmd,
    update_changelogs,
    update_changelogs_cmd,
    update_upgrade_notice,
    update_upgrade_notice_cmd,
)
from ._release import (
    StepStatus,
    StepTracker,
    prepare_release_cmd,
    publish_release_cmd,
    run_prepare_release,
    run_publish_release,
)

# Create the main CLI group
cli = _create_cli_group()

# Register all commands with the cli group
cli.add_command(generate_changeset)
cli.add_command(analyze_changesets_cmd)
cli.add_command(generate_release_notes)
cli.add_command(bump_version_cmd)
cli.add_command(update_changelog_cmd)
cli.add_command(update_changelogs_cmd)
cli.add_command(update_readme_cmd)
cli.add_command(update_upgrade_notice_cmd)
cli.add_command(sync_release_pr_cmd)
cli.add_command(prepare_release_cmd)
cli.add_command(publish_release_cmd)


__all__ = [
    # Core
    "cli",
    "main",
    "CLIContext",
    "VERSION_FLAGS",
    "create_cli_context",
    "_read_notes_file",
    "_resolve_target",
    # Changesets
    "create_changeset",
    "generate_changeset",
    "run_analyze",
    "analyze_changesets_cmd",
    # Notes
    "render_release_notes",
    "generate_release_notes",
    "sync_release_pr",
    "sync_release_pr_cmd",
    # Versions
    "bump_version",
    "bump_version_cmd",
    "next_release_version",
    "update_readme",
    "update_readme_cmd",
    # Changelogs
    "update_changelog",
    "update_changelog_cmd",
    "update_changelogs",
    "update_changelogs_cmd",
    "update_upgrade_notice",
    "update_upgrade_notice_cmd",
    # Release
    "StepStatus",
    "StepTracker",
    "run_prepare_release",
    "prepare_release_cmd",
    "run_publish_release",
    "publish_release_cmd",
]
