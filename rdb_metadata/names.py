"""Helpers for No-Intro style game names.

No-Intro names carry region and revision information in trailing
parenthesised groups, e.g. "Zillion (Japan) (Rev 2)".
"""

# Checked in order; the first group with a matching marker wins.
# Europe precedes Japan so "(Europe, Japan)" resolves to "eu".
REGION_MARKERS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("us", ("(usa", "(us)", ", usa)")),
    ("eu", ("(europe", "(eu)", ", europe)")),
    ("jp", ("(japan", "(jp)", ", japan)")),
    # Multi-region releases default to US
    ("us", ("(usa, europe)", "(world)")),
)


def display_name(name: str) -> str:
    """Strip region/version groups from a No-Intro name.

    Everything from the first " (" onwards is removed, unless the name
    starts with it, in which case the name is returned unchanged.

    Args:
        name: Full No-Intro name

    Returns:
        Name suitable for display
    """
    idx = name.find(" (")
    if idx > 0:
        return name[:idx].rstrip()
    return name


def region_hint(name: str) -> str:
    """Return "us", "eu", "jp", or "" when no region can be inferred."""
    lowered = name.lower()
    for region, markers in REGION_MARKERS:
        if any(marker in lowered for marker in markers):
            return region
    return ""
