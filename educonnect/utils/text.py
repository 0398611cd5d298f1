"""Text utilities for sanitization and display helpers."""
import re
import secrets
import string

_BASE36 = string.digits + string.ascii_lowercase

# Width of the users.avatar column
MAX_INITIALS = 10


def sanitize_text(text: str) -> str:
    """Clean and normalize LLM output for safe JSON/markdown rendering.

    Preserves UTF-8 characters, newlines, and basic formatting while removing
    control characters that could break JSON or terminal output.

    Examples:
        >>> sanitize_text("Great work on NCERT  exercises ⭐")
        'Great work on NCERT exercises ⭐'
        >>> sanitize_text(None)
        ''
    """
    if text is None:
        return ""

    text = str(text)

    # Keep \t, \n and \r; drop every other control character
    text = re.sub(r'[\x00-\x08\x0B-\x0C\x0E-\x1F\x7F-\x9F]', '', text)

    # Collapse runs of spaces/tabs but not newlines
    text = re.sub(r'[ \t]+', ' ', text)

    # At most one blank line between paragraphs
    text = re.sub(r'\n{3,}', '\n\n', text)

    lines = [line.strip() for line in text.split('\n')]
    return '\n'.join(lines).strip()


def avatar_initials(name: str) -> str:
    """Upper-cased initials of the words in a display name, at most ``MAX_INITIALS``.

    Examples:
        >>> avatar_initials("Rahul Student")
        'RS'
    """
    return "".join(part[0] for part in name.split() if part).upper()[:MAX_INITIALS]


def generate_student_code() -> str:
    """Random student code: ``S`` followed by nine base-36 characters."""
    return "S" + "".join(secrets.choice(_BASE36) for _ in range(9))
