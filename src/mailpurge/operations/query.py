"""Gmail search query construction for deletion targets."""

from collections.abc import Sequence

from ..models.run import Target


def build_query(target: Target, filter_rules: Sequence[str] = ()) -> str:
    """Build the Gmail search query selecting a sender's messages.

    Args:
        target: Sender to delete from
        filter_rules: Extra search clauses, e.g. ``"older_than:1y"``

    Returns:
        str: Gmail search query
    """
    sender = target.identifier.replace('"', "").strip()
    clauses = [f'from:"{sender}"']
    clauses.extend(rule.strip() for rule in filter_rules if rule and rule.strip())
    return " ".join(clauses)
