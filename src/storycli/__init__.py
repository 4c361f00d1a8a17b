"""storycli -- Generate user stories from the terminal with GitHub Copilot.

The tool signs in once through the GitHub OAuth device flow, trades the
resulting access token for short-lived Copilot bearer tokens on demand, and
asks the completion endpoint to draft a user story for a title typed at the
prompt.

Typical workflow::

    storycli            # first run: prints a verification URL and code
    storycli            # later runs: prompts for a story title

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models for stored credentials and requests.
    config: YAML credential document, path resolution, atomic writes.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    transport: Shared ``httpx.Client`` factory (proxy, TLS settings).
"""

__version__ = "0.1.0"
