import re

# Matches: CS 1331, CS-1331, cs1331, MATH 1551, APPH 1040, CS 4803X, etc.
CANONICAL = re.compile(r'^([A-Za-z]{2,5})\s*[-]?\s*(\d{4}[A-Za-z]?)$')

SPLIT_RE = re.compile(r'[,\n;]+')


def normalize_code(raw) -> str | None:
    """
    Normalizes a course code to canonical 'DEPT NNNN' form.
    'cs1331', 'CS-1331' and 'CS  1331' all become 'CS 1331'.
    Returns None if the value cannot be read as a course code.
    """
    if raw is None:
        return None
    s = str(raw).strip()
    if not s:
        return None
    m = CANONICAL.match(s)
    if not m:
        return None
    return f"{m.group(1).upper()} {m.group(2).upper()}"


def normalize_codes(raw, catalog_codes: set | None = None) -> dict:
    """
    Normalizes a list of codes, or a comma/newline/semicolon separated string.

    Returns:
      {
        "valid":          ["CS 1331", "MATH 1551"],
        "invalid":        ["asdf"],          # not shaped like a course code
        "not_in_catalog": ["CS 9999"],       # only when catalog_codes is given
      }
    Duplicates are dropped, first occurrence wins.
    """
    if raw is None:
        tokens = []
    elif isinstance(raw, (list, tuple)):
        tokens = [str(t) for t in raw if t is not None]
    else:
        tokens = SPLIT_RE.split(str(raw))

    valid: list[str] = []
    invalid: list[str] = []
    not_in_catalog: list[str] = []
    seen: set[str] = set()

    for token in tokens:
        token = token.strip()
        if not token:
            continue
        code = normalize_code(token)
        if code is None:
            if token not in seen:
                invalid.append(token)
                seen.add(token)
            continue
        if code in seen:
            continue
        seen.add(code)
        if catalog_codes is not None and code not in catalog_codes:
            not_in_catalog.append(code)
        else:
            valid.append(code)

    return {"valid": valid, "invalid": invalid, "not_in_catalog": not_in_catalog}
