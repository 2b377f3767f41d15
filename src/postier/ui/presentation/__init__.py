"""Qt adapters for dialogs and notices."""
