"""Pure domain layer: money values, record views, lifecycle tables, clock."""
