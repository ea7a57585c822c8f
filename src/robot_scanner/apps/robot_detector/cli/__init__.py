"""CLI subpackage for the robot scanner.

Create the Typer application and register all command modules.
"""

import typer

from robot_scanner.apps.robot_detector.cli.detect_cmd import detect
from robot_scanner.apps.robot_detector.cli.replay_cmd import replay

app = typer.Typer(help="Detect mechanically regular trading robots in trade streams")

app.command()(detect)
app.command()(replay)

__all__ = ["app"]
