"""Feature modules: workflow graphs and prompt execution."""
