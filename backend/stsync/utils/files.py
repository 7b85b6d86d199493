from pathlib import Path


def atomic_write(content: str, target_path: Path, encoding: str = "utf-8") -> None:
    """Write to a sibling temp file, then rename over the target."""
    target_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = target_path.parent / f".{target_path.name}.tmp"
    try:
        # newline="" keeps line endings exactly as given
        with open(temp_path, "w", encoding=encoding, newline="") as f:
            f.write(content)
        temp_path.replace(target_path)
    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise
