"""Normalisation of program output before comparing it with expectations."""


def clean_output(output: str) -> str:
    """Normalise line endings, drop leading control bytes and surrounding whitespace."""
    output = output.replace("\r\n", "\n").replace("\r", "\n")
    for index, char in enumerate(output):
        if " " <= char <= "~":
            output = output[index:]
            break
    return output.strip()


def format_for_display(text: str) -> str:
    """Make newlines visible in one-line error messages."""
    return text.replace("\n", "\\n")
