import shutil

def format_bytes(size):
    power = 2**10
    n = 0
    power_labels = {0 : '', 1: 'K', 2: 'M', 3: 'G', 4: 'T'}
    while size > power and n < 4:
        size /= power
        n += 1
    return f"{size:.2f} {power_labels[n]}B"

def progress_bar(progress, filename, status, width=None):
    """One-line text bar for a transfer row."""
    if width is None:
        term_width = shutil.get_terminal_size().columns
        width = max(10, min(40, term_width - 45))

    progress = max(0, min(100, progress))
    filled = int(width * progress / 100)
    bar = "█" * filled + "░" * (width - filled)

    if len(filename) > 18:
        filename = filename[:15] + "..."

    return f"{filename:<18} [{bar}] {progress:>3}% {status}"
