"""Version information for the Billing service."""

import os

VERSION_MAJOR = 0
VERSION_MINOR = 3
VERSION_PATCH = 0
VERSION_RELEASE_LEVEL = 'alpha'
VERSION_RELEASE_NUMBER = 1

# Short git revision, set by the build (e.g. GIT_VERSION=$(git rev-parse --short HEAD))
GIT_VERSION = os.getenv('GIT_VERSION', '')


def version(git_version: str = GIT_VERSION) -> str:
    """Return the semantic version for the current build."""
    core = f"{VERSION_MAJOR}.{VERSION_MINOR}.{VERSION_PATCH}"

    if VERSION_RELEASE_LEVEL:
        if VERSION_RELEASE_NUMBER > 0:
            core = f"{core}-{VERSION_RELEASE_LEVEL}.{VERSION_RELEASE_NUMBER}"
        else:
            core = f"{core}-{VERSION_RELEASE_LEVEL}"

    if git_version:
        core = f"{core} ({git_version})"

    return core
