"""Core graph model for canvasflow."""
