"""Entry point for python -m mealkit execution.

This module enables running mealkit as a module:
    python -m mealkit --help
    python -m mealkit activity "Zoo trip Saturday at 10am"
"""

from mealkit.cli import app

if __name__ == "__main__":
    app()
