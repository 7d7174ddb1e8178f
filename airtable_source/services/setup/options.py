"""Setup answers → persisted plugin options.

Everything here is pure: the result is written verbatim into the host
configuration file, so no I/O and no randomness.
"""

from typing import Any, Dict, List

MAX_POINTS_FOR_JOHN = 15


def parse_tables(value: Any) -> List[str]:
    """Table names from a list or a comma-separated string, order kept, blanks dropped."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    names: List[str] = []
    for item in items:
        name = str(item).strip()
        if name and name not in names:
            names.append(name)
    return names


def get_options_from_setup(answers: Dict[str, Any]) -> Dict[str, Any]:
    """Derive the options to persist from raw setup answers.

    Out-of-range values are clamped, not rejected: ``pointsForJohn`` never
    exceeds ``MAX_POINTS_FOR_JOHN``. Keys missing from ``answers`` are left out,
    and ``apiKey`` is never persisted (it belongs in ``AIRTABLE_API_KEY``).
    """
    options: Dict[str, Any] = {}

    if "baseId" in answers:
        options["baseId"] = str(answers["baseId"] or "").strip()
    if "tables" in answers:
        options["tables"] = parse_tables(answers["tables"])
    if "watch" in answers:
        options["watch"] = bool(answers["watch"])
    if "pointsForJane" in answers:
        options["pointsForJane"] = answers["pointsForJane"]
    if "pointsForJohn" in answers:
        points = answers["pointsForJohn"]
        options["pointsForJohn"] = min(points, MAX_POINTS_FOR_JOHN) if points is not None else None

    return options
