"""Prompt sent alongside every uploaded scan."""

from .core.models import Category

_CATEGORY_CHOICES = ", ".join(c.value for c in Category if c is not Category.UNSORTED)

RECEIPT_EXTRACTION_PROMPT = f"""Analyze this scanned receipt or document (it may be Japanese). Extract JSON with these keys:
    "date" (YYYY-MM-DD),
    "vendor" (Japanese name as printed; if medical, use the clinic name),
    "category" (one of: {_CATEGORY_CHOICES}),
    "total_amount" (integer, no currency symbols or separators).

If the page contains more than one receipt, return a JSON array with one object per receipt.
If a value cannot be read, use an empty string (or 0 for total_amount).
Return only the JSON without additional comments."""
