from collections.abc import Sequence

from transaction_analyzer.models import Transaction

DEFAULT_EXAMPLE_LIMIT = 50

_EXPORT_FIELDS = ("raw_description", "merchant_canonical", "category", "type")


def build_examples(
    transactions: Sequence[Transaction],
    limit: int = DEFAULT_EXAMPLE_LIMIT,
) -> list[dict[str, str]]:
    """Sanitized sample for sharing: descriptions and labels only, never amounts or dates."""
    if limit <= 0:
        return []
    return [
        {field: str(getattr(transaction, field)) for field in _EXPORT_FIELDS}
        for transaction in transactions[:limit]
    ]
