"""Generation, parsing and matching of HTTP Accept headers."""

from typing import List, Sequence, Tuple, Union

AcceptElement = Union[str, Tuple[str, Union[float, str]]]


def generate_accept_header(*elements: AcceptElement) -> str:
    """Build an Accept header from media types and (media type, q) pairs.

    Types are listed from least to most preferred; a q of 1.0 is left implicit.

    Raises:
        ValueError: when a q value is outside (0, 1]
    """
    parts = []
    for element in elements:
        if isinstance(element, str):
            qs = "1.0"
            mtype = element
        else:
            mtype, q = element
            q = float(q)
            if q > 1 or q <= 0:
                raise ValueError(f"Invalid preference factor: {q!r}")
            qs = f"{q:0.1f}"

        parts.append((qs, mtype))

    parts.sort()
    chunks = []
    for qs, mtype in parts:
        if qs == "1.0":
            chunks.append(mtype)
        else:
            chunks.append(f"{mtype}; q={qs}")

    return ", ".join(chunks)


def parse_accept_header(value: str) -> List[Tuple[str, str, float]]:
    """Parse an Accept header into (main, sub, q) tuples, best first.

    Entries that are not media types are ignored, as are malformed q values.
    """
    accept = []
    for chunk in value.split(","):
        parts = [s.strip() for s in chunk.split(";")]

        mtype = parts.pop(0)
        if "/" not in mtype:
            continue

        main, sub = mtype.split("/", 1)

        q = 1.0
        for ext in parts:
            if "=" not in ext:
                continue
            k, v = ext.split("=", 1)
            if k.strip() == "q":
                try:
                    q = float(v)
                    break
                except ValueError:
                    pass

        accept.append((q, main, sub))

    accept.sort(reverse=True)
    return [(main, sub, q) for (q, main, sub) in accept]


def match_types(
    accept_types: Sequence[Tuple[str, str, float]], have_types: Sequence[str]
) -> List[Tuple[str, float]]:
    """Given parsed Accept types and available media types, return the
    acceptable ones as (media type, q), most preferred first."""
    default = 1.0 if not accept_types else 0.0

    match_main = {}
    match_sub = {}
    for main, sub, q in accept_types:
        if main == "*":
            default = max(default, q)
        elif sub == "*":
            match_main[main] = max(match_main.get(main, 0.0), q)
        else:
            match_sub[(main, sub)] = max(match_sub.get((main, sub), 0.0), q)

    accepted_list = []
    for order, mtype in enumerate(have_types):
        main, sub = mtype.split("/", 1)
        if (main, sub) in match_sub:
            q = match_sub[(main, sub)]
        else:
            q = match_main.get(main, default)

        if q:
            accepted_list.append((1 - q, order, q, mtype))

    accepted_list.sort()
    return [(mtype, q) for (_, _, q, mtype) in accepted_list]


def get_acceptable(accept_header: str, have_types: Sequence[str]) -> List[str]:
    """Return the available media types acceptable to ``accept_header``, best first."""
    accepted = parse_accept_header(accept_header)
    preferred = match_types(accepted, have_types)
    return [mtype for (mtype, _) in preferred]
