"""ServiceNow incident reporting for Puppet run reports."""

__version__ = "1.0.0"
