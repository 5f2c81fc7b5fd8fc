"""External collaborators and repositories: the shared store, ledger access and device session."""
