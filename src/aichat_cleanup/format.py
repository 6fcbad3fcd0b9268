"""Small text formatting helpers shared by the scanner, service and CLI."""


def format_size(size: int) -> str:
    """Render a byte count as B/KB/MB/GB with two decimals above 1 KB."""
    kb = 1024
    mb = kb * 1024
    gb = mb * 1024

    if size >= gb:
        return f"{size / gb:.2f} GB"
    elif size >= mb:
        return f"{size / mb:.2f} MB"
    elif size >= kb:
        return f"{size / kb:.2f} KB"
    return f"{size} B"


def truncate(text: str, max_len: int) -> str:
    """Truncate text to max_len, adding ellipsis if needed."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def path_basename(path: str) -> str:
    """Last segment of a slash-separated path, '' for an empty path."""
    return path.rstrip("/").split("/")[-1]


def shorten_path(path: str, max_len: int = 40) -> str:
    """Collapse the middle of a long path to 'first/.../last'."""
    if len(path) <= max_len:
        return path

    parts = path.split("/")
    if len(parts) <= 2:
        return truncate(path, max_len)

    first, last = parts[0], parts[-1]
    if len(first) + len(last) + 5 > max_len:
        return truncate(last, max_len)
    return f"{first}/.../{last}"
