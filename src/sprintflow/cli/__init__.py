"""Command line sub-apps for Sprintflow."""
