"""autotask — scheduled messages, check-ins and announcements for OneBot bots."""

__version__ = "0.3.0"
