"""Domain layer (pure duel rules).

- Symbol tables, grid draws and scoring live here.
- No Redis, no DB sessions, no FastAPI.
- Randomness and time are passed in as arguments.
"""
