"""
weekplan: command-driven weekly planner.

This package turns short typed commands into a week-long timetable. It
includes:

- Cards: named, colored categories
- Tasks with a duration and a due date
- Events, one-off or recurring on chosen weekdays
- A scheduler that lays events down and fills the free working hours with
  tasks, splitting them into blocks when allowed
- A YAML configuration file for working hours, granularity and splitting

For more information, see the README.md file.
"""

from .cli import main

__version__ = "0.1.0"
__all__ = ['main']
