import math


def estimate_timeline(
    progress: dict,
    credits_per_term: int = 15,
) -> dict:
    """
    Rough graduation timeline estimate based on remaining requirement credits.

    Uses the per-category remaining credits from evaluate_progress(), so a
    double-counted course reduces every category it fills.

    Args:
        progress: dict from progress.evaluate_progress()
        credits_per_term: assumed load per term (default 15)

    Returns:
        {
          "remaining_credits_total": 42,
          "estimated_min_terms": 3,
          "disclaimer": "..."
        }
    """
    total = sum(c.get("remaining_credits", 0) for c in progress.get("categories", []))
    per_term = max(1, int(credits_per_term or 1))
    estimated_terms = math.ceil(total / per_term) if total > 0 else 0

    return {
        "remaining_credits_total": total,
        "estimated_min_terms": estimated_terms,
        "disclaimer": (
            f"Rough estimate. Assumes {per_term} requirement credits per term "
            "and every course offered each term. Ignores prerequisite chains "
            "and planned-but-not-completed courses."
        ),
    }
