from typing import List


SHELL_ESCAPED_CHARS = ("\\", '"', "$", "`")


def normalize_host(host: str) -> str:
    """Return *host* with a scheme and without trailing slashes."""

    value = (host or "").strip()
    if not value:
        raise ValueError("host must not be empty")

    if "://" not in value:
        value = f"http://{value}"

    return value.rstrip("/")


def escape_double_quoted(text: str) -> str:
    """Escape *text* for use inside a double-quoted shell argument."""

    escaped: List[str] = []
    for char in text:
        if char in SHELL_ESCAPED_CHARS:
            escaped.append("\\")
        escaped.append(char)
    return "".join(escaped)


def format_commit_command(message: str) -> str:
    return f'git commit -m "{escape_double_quoted(message)}"'
