"""Card-collection tracker: catalog sync and completion progress."""
