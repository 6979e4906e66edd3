"""
Utility modules for the prediction bot.

Provides:
- logging: Logging setup with secret filtering
- database: SQLite connection manager and schema
- board: Editable announcement cards
- durations: Duration parsing
- permissions: Command cooldowns
- scheduler: Periodic background tasks
"""
