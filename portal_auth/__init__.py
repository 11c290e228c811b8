"""Password sign-in with one-time-code step-up and invitation-based account activation."""

__version__ = "0.1.0"
