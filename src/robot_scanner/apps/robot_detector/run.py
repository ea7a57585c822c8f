"""CLI entry point for the robot scanner.

All command logic lives in the cli subpackage.
"""

from robot_scanner.apps.robot_detector.cli import app

__all__ = ["app", "main"]


def main() -> None:
    """Run the robot scanner CLI application."""
    app()


if __name__ == "__main__":
    main()
