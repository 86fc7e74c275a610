"""slotwarden: quota-aware relationship request dispatcher."""

__version__ = "0.1.0"
