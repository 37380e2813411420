"""Record tracker: job applications and helpdesk tickets with CSV transfer."""

__version__ = "0.1.0"
