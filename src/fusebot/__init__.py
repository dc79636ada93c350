"""
fusebot — posts a Slack message with a delete button that burns out.

An authorized user can delete the message with its button; otherwise the
button is stripped once the timeout elapses.
"""

__version__ = "0.1.0"
