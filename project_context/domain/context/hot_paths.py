from typing import Iterable, List

# Files always treated as relevant, in inclusion order
ALWAYS_HOT_PATHS = (
    "package.json",           # dependencies and scripts
    "app.json",               # Expo configuration
    "app/_layout.tsx",        # root layout
    "app/(tabs)/index.tsx",   # main home screen
    "constants/Colors.ts",    # theme colors
    "tsconfig.json",
)


def _matches(path: str, hot_path: str) -> bool:
    return path == hot_path or path.endswith("/" + hot_path)


def is_always_hot(path: str) -> bool:
    """Check whether a path is on the always-hot allow-list"""
    return any(_matches(path, hot_path) for hot_path in ALWAYS_HOT_PATHS)


def get_existing_hot_paths(candidate_paths: Iterable[str]) -> List[str]:
    """Return candidates that are always-hot, ordered by the allow-list"""

    candidates = list(dict.fromkeys(candidate_paths))
    existing = []
    for hot_path in ALWAYS_HOT_PATHS:
        for path in candidates:
            if _matches(path, hot_path) and path not in existing:
                existing.append(path)
    return existing
