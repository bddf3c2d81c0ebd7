"""Cell text and styles for the process table."""


def truncate(text: str, max_len: int) -> str:
    """Shorten text to max_len characters, ending with '...' when cut."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def format_memory(memory_mb: int) -> str:
    """Format resident memory in megabytes."""
    return f"{memory_mb:>6} MB"


def format_cpu(cpu_percent: float) -> str:
    """Format CPU usage as a percentage."""
    return f"{cpu_percent:>6.1f}%"


def format_port(port: int | None, protocol: str | None) -> str:
    """Format a port cell, e.g. '8080/tcp'."""
    if port is None:
        return ""
    return f"{port}/{protocol}" if protocol else str(port)


def cpu_style(cpu_percent: float) -> str:
    """Rich style for a CPU cell: red above 50%, yellow above 10%, dim otherwise."""
    if cpu_percent > 50.0:
        return "bold red"
    if cpu_percent > 10.0:
        return "yellow"
    return "dim"


def confirm_prompt(count: int) -> str:
    """Text of the kill confirmation dialog."""
    plural = "" if count == 1 else "es"
    return f"Kill {count} process{plural}?\n\n[Enter] Confirm  [Esc] Cancel"
