"""
Cogs for the prediction bot.

- predictions: Chat commands for creating, voting on and resolving predictions
- interaction_bridge: Processes button presses queued by the dashboard
"""
