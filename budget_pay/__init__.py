"""Budget Pay personal budgeting package."""

__all__ = [
    "config",
    "errors",
    "periods",
    "budgeting",
    "analytics",
    "colors",
    "notifications",
    "data_loader",
    "reports",
    "charts",
    "assistant",
    "services",
    "auth",
    "webapp",
    "api",
    "cli",
    "db",
    "models",
]

__version__ = "0.1.0"
