"""Jaro-Winkler title similarity."""

PREFIX_SCALE = 0.1
MAX_PREFIX = 4


def jaro(a: str, b: str) -> float:
    """Plain Jaro similarity of two strings."""
    if a == b:
        return 1.0
    len_a, len_b = len(a), len(b)
    if len_a == 0 or len_b == 0:
        return 0.0

    # Scan from a canonical side so the score does not depend on argument order
    if (len_a, a) > (len_b, b):
        a, b = b, a
        len_a, len_b = len_b, len_a

    window = max(0, max(len_a, len_b) // 2 - 1)
    a_matched = [False] * len_a
    b_matched = [False] * len_b

    matches = 0
    for i, ch in enumerate(a):
        start = max(0, i - window)
        end = min(i + window + 1, len_b)
        for j in range(start, end):
            if b_matched[j] or b[j] != ch:
                continue
            a_matched[i] = True
            b_matched[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    transpositions = 0
    k = 0
    for i in range(len_a):
        if not a_matched[i]:
            continue
        while not b_matched[k]:
            k += 1
        if a[i] != b[k]:
            transpositions += 1
        k += 1

    return (matches / len_a + matches / len_b + (matches - transpositions / 2) / matches) / 3


def similarity(a: str, b: str) -> float:
    """
    Jaro-Winkler similarity in [0, 1].

    The Jaro score is boosted by ``0.1 * prefix * (1 - jaro)`` where
    ``prefix`` is the length of the common prefix, capped at 4 characters.
    Two empty strings are identical (1.0); an empty and a non-empty string
    share nothing (0.0).
    """
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    score = jaro(a, b)
    if score == 0.0:
        return 0.0

    prefix = 0
    for x, y in zip(a[:MAX_PREFIX], b[:MAX_PREFIX]):
        if x != y:
            break
        prefix += 1

    return min(1.0, score + PREFIX_SCALE * prefix * (1 - score))
