"""
CLI entry points for batch stock analysis.

Provides command-line interfaces for:
- Batch analysis of a symbol list (python -m cli.analyze)
"""
