"""
Expense category labels shared by normalization, analytics and export.
"""

# Fallback labels for fields the extraction service did not return
UNCATEGORIZED = "Uncategorized"
UNKNOWN_MERCHANT = "Unknown"

# Categories treated as tax deductible in the analytics summary
TAX_DEDUCTIBLE_CATEGORIES = frozenset(
    {
        "Business",
        "Office Supplies",
        "Travel",
        "Meals & Entertainment",
        "Transportation",
        "Professional Services",
    }
)


def is_tax_deductible(category: str) -> bool:
    """Check whether a normalized category label is on the deductible allow-list."""
    return category in TAX_DEDUCTIBLE_CATEGORIES
