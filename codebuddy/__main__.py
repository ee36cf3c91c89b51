"""
Codebuddy - AI script fixer for terminal output

Features:
- Multiple AI providers behind one request contract
- Site-specific system prompts matched by hostname
- Conversation-aware retries that steer away from failed fixes

Quick Start:
    pip install -e .
    codebuddy analyze output.log --script deploy.sh
"""

from codebuddy.cli.cli import main

if __name__ == "__main__":
    main()
