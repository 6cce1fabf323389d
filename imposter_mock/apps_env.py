from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

from .local_config import LOCAL_CONFIG_NAMES


def _detect_project_root(start: Path) -> Path:
    for candidate in (start, *start.parents):
        if any((candidate / name).exists() for name in LOCAL_CONFIG_NAMES):
            return candidate
    return start


def load_apps_env(*, project_root: Path | None = None) -> Path:
    """
    Load IMPOSTER_* / OTEL_* defaults from the project's `.env`.

    - The project root is the nearest directory holding an `.imposterrc*` file,
      starting from the working directory.
    - Values already exported in the environment win (override=False).
    """

    if project_root is None:
        project_root = _detect_project_root(Path.cwd().resolve())

    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)
    return env_path
