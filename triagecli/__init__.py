"""triagecli: AI-assisted issue triage from the command line."""

__version__ = "0.1.0"
