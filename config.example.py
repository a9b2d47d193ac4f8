# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from DAGENDA_* environment variables
(optionally via a local, gitignored .env file). Every value has a default.
"""

ENV_VARS = {
    # App / logging
    "DAGENDA_APP_NAME": "App display name (default: dagenda).",
    "DAGENDA_LOG_LEVEL": "Console logging level (default: INFO).",
    # Connectors
    "DAGENDA_CONSOLE_ENABLED": "Enable the console REPL (true/false, default: true).",
    "DAGENDA_NOTIFIER_ENABLED": "Announce upcoming task starts in the log (true/false, default: false).",
    # Paths (gitignored)
    "DAGENDA_DATA_DIR": "Local data directory; also holds dagenda.log (default: .local/dagenda).",
    "DAGENDA_TASKS_DB_PATH": "Task SQLite path (default: <data_dir>/tasks.sqlite3).",
    # Scheduling
    "DAGENDA_LOOKAHEAD_MINUTES": "Agenda / notifier lookahead window (default: 1440).",
    "DAGENDA_NOTIFY_INTERVAL_SECONDS": "Notifier poll interval, at least 1 (default: 30).",
}
