"""Pure domain types: versioned documents, predictions and reconcilable entities."""
