"""Weekly planner: tasks in a Monday-Sunday grid, sprints and reflections."""

__version__ = "0.1.0"
