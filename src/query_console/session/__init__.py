"""Query session wiring: channels, controller and editor commands."""
